# dropserver/__init__.py
