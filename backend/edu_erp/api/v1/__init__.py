# edu_erp/api/v1/__init__.py
