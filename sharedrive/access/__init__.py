from .gate import (
    FileAccess,
    FolderAccess,
    get_accessible_file,
    get_accessible_folder,
    get_public_file,
    get_public_folder,
    require_file_permission,
    require_folder_permission,
)
from .resolver import has_any_access, is_descendant, resolve_permission

__all__ = [
    "FileAccess",
    "FolderAccess",
    "get_accessible_file",
    "get_accessible_folder",
    "get_public_file",
    "get_public_folder",
    "has_any_access",
    "is_descendant",
    "require_file_permission",
    "require_folder_permission",
    "resolve_permission",
]
