"""
Backend adapters, store selection and the embedded schema.
"""
