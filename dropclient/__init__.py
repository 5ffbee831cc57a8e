# dropclient/__init__.py
