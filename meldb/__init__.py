from meldb.db import Store, StoreError, connect

__all__ = ['Store', 'StoreError', 'connect']
