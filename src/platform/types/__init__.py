from src.platform.types.uuid_type import UtilsUUID7

__all__ = ['UtilsUUID7']
