# chiffrage/clients/utils.py
"""JSON shapes for clients and projects."""

from chiffrage.rates import resolve_rates


def serialize_project(p) -> dict:
    return {
        'id'             : p.id,
        'client_id'      : p.client_id,
        'name'           : p.name,
        'description'    : p.description or '',
        'specific_rates' : dict(p.specific_rates or {}),
        'effective_rates': resolve_rates(p.client, p),
    }


def serialize_client(c, with_projects=False) -> dict:
    data = {
        'id'            : c.id,
        'name'          : c.name,
        'company_name'  : c.company_name,
        'email'         : c.email or '',
        'address'       : c.address or '',
        'default_rates' : dict(c.default_rates or {}),
    }
    if with_projects:
        data['projects'] = [serialize_project(p) for p in c.projects]
    return data
