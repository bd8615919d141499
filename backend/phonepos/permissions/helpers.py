# Overview: Lookup helpers over PERMISSION_DEFINITIONS.

from .definitions import PERMISSION_DEFINITIONS


_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def get_permissions_by_category(category):
    """Permission dicts for one category, in definition order."""
    return [get_permission_definition(perm[0]) for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {"code": code, "name": name, "description": description, "category": category}


def validate_permission_code(code):
    return code in _BY_CODE
