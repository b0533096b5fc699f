"""
Clustering of graph nodes for notiongraph.

Two independent groupings are computed over the same nodes: by tag, where a
node joins one cluster per tag it carries, and by connectivity, where every
node belongs to exactly one connected component.
"""

import re
from typing import Dict, List

from .models import ClusterInfo, ClusterSet, Edge, PageNode


# Minimum number of edges between two nodes for them to count as connected
CONNECTION_THRESHOLD = 1


def tag_cluster_id(tag: str) -> str:
    """Slugify a tag into a cluster id, e.g. "Machine Learning" -> "tag-machine-learning"."""
    slug = re.sub(r'\s+', '-', tag).lower()
    return f"tag-{slug}"


def cluster_by_tags(nodes: List[PageNode]) -> List[ClusterInfo]:
    """
    Group nodes by tag.

    A node with several tags joins several clusters. Untagged nodes are
    collected in one "uncategorized" cluster, emitted only when non-empty.

    Args:
        nodes: Graph nodes

    Returns:
        One cluster per distinct tag, in first-seen order, then uncategorized
    """
    clusters: Dict[str, List[str]] = {}
    uncategorized: List[str] = []

    for node in nodes:
        if node.tags:
            for tag in node.tags:
                members = clusters.setdefault(tag, [])
                if node.id not in members:
                    members.append(node.id)
        else:
            uncategorized.append(node.id)

    result = [
        ClusterInfo(id=tag_cluster_id(tag), label=tag, nodes=node_ids)
        for tag, node_ids in clusters.items()
    ]

    if uncategorized:
        result.append(ClusterInfo(id="uncategorized", label="Uncategorized", nodes=uncategorized))

    return result


def cluster_by_connections(nodes: List[PageNode], edges: List[Edge]) -> List[ClusterInfo]:
    """
    Partition nodes into connected components, treating edges as undirected.

    Edge multiplicity between a pair accumulates as a weight; a pair is
    connected when the weight reaches CONNECTION_THRESHOLD. Edges touching
    ids outside `nodes` are ignored. Nodes without edges form singleton
    components.

    Args:
        nodes: Graph nodes
        edges: Graph edges

    Returns:
        One cluster per component, labelled "Group 1", "Group 2", ...
    """
    index_of: Dict[str, int] = {node.id: index for index, node in enumerate(nodes)}

    weights: List[Dict[int, int]] = [{} for _ in nodes]
    for edge in edges:
        source = index_of.get(edge.source)
        target = index_of.get(edge.target)
        if source is None or target is None:
            continue
        weights[source][target] = weights[source].get(target, 0) + 1
        if source != target:
            weights[target][source] = weights[target].get(source, 0) + 1

    visited = [False] * len(nodes)
    communities: List[List[int]] = []

    for start in range(len(nodes)):
        if visited[start]:
            continue
        community: List[int] = []
        stack = [start]
        while stack:
            current = stack.pop()
            if visited[current]:
                continue
            visited[current] = True
            community.append(current)
            neighbours = sorted(
                neighbour for neighbour, weight in weights[current].items()
                if weight >= CONNECTION_THRESHOLD and not visited[neighbour]
            )
            stack.extend(reversed(neighbours))
        communities.append(community)

    return [
        ClusterInfo(
            id=f"community-{number}",
            label=f"Group {number + 1}",
            nodes=[nodes[index].id for index in community]
        )
        for number, community in enumerate(communities)
    ]


def generate_clusters(nodes: List[PageNode], edges: List[Edge]) -> ClusterSet:
    """Compute both clusterings; consumers may use either independently."""
    return ClusterSet(
        by_tags=cluster_by_tags(nodes),
        by_connections=cluster_by_connections(nodes, edges),
    )
