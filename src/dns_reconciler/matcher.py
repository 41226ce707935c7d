"""
Matching of resolved addresses against the known-server table.

Pure functions: nothing here touches the store or the network.
"""

from typing import Optional

from .models import KnownServer, ResolvedRecord, ServerGroup


def match_server(ip: str, known_servers: list[KnownServer]) -> Optional[str]:
    """
    Find the known server answering on an address.

    Args:
        ip: Resolved address
        known_servers: Known-server table in user order

    Returns:
        Name of the first server whose ip equals ``ip`` exactly, or None
    """
    for server in known_servers:
        if server.ip == ip:
            return server.name
    return None


def group_by_server(
    records: list[ResolvedRecord],
    known_servers: list[KnownServer],
) -> list[ServerGroup]:
    """
    Group resolved records by the server they were matched to.

    Groups follow the order of the known-server table; servers without
    records are omitted. Records whose server name no longer exists in the
    table get a group of their own after the known ones, and unmatched
    records come last. Record order inside a group is preserved.
    """
    groups: dict[Optional[str], ServerGroup] = {}
    for server in known_servers:
        groups.setdefault(server.name, ServerGroup(server_name=server.name))

    stale: dict[str, ServerGroup] = {}
    unmatched = ServerGroup(server_name=None)

    for record in records:
        if record.server_name is None:
            unmatched.records.append(record)
        elif record.server_name in groups:
            groups[record.server_name].records.append(record)
        else:
            stale.setdefault(
                record.server_name, ServerGroup(server_name=record.server_name)
            ).records.append(record)

    result = [group for group in groups.values() if group.records]
    result.extend(stale.values())
    if unmatched.records:
        result.append(unmatched)
    return result
