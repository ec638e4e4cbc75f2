"""
Evidence network construction and connected-component partitioning.

Treatments are vertices; every study links all of its arms' treatments
pairwise (a clique per study). Two treatments belong to the same component
iff a chain of shared studies connects them.
"""

from typing import Any, Dict, Hashable, List, Sequence

import networkx as nx


def _first_seen_index(values: Sequence[Hashable]) -> Dict[Hashable, int]:
    """Map each distinct value to the position of its first occurrence."""
    index = {}
    for value in values:
        if value not in index:
            index[value] = len(index)
    return index


def build_evidence_graph(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable]
) -> nx.Graph:
    """
    Build the undirected evidence network.

    Nodes are added in first-seen treatment order. Each edge carries a
    ``studies`` list naming the studies that compare the pair and a
    ``weight`` equal to its length.

    Args:
        studies: Study label of each arm
        treatments: Treatment of each arm

    Returns:
        networkx Graph with one node per distinct treatment
    """
    if len(studies) != len(treatments):
        raise ValueError(
            f"Studies ({len(studies)}) and treatments ({len(treatments)}) must share length."
        )

    G = nx.Graph()
    G.add_nodes_from(_first_seen_index(treatments))

    arms_by_study: Dict[Hashable, List[Any]] = {}
    for study, treatment in zip(studies, treatments):
        arms_by_study.setdefault(study, []).append(treatment)

    for study, study_treatments in arms_by_study.items():
        for i, t1 in enumerate(study_treatments):
            for t2 in study_treatments[i + 1:]:
                if t1 == t2:
                    continue
                if G.has_edge(t1, t2):
                    if study not in G[t1][t2]['studies']:
                        G[t1][t2]['studies'].append(study)
                else:
                    G.add_edge(t1, t2, studies=[study])
                G[t1][t2]['weight'] = len(G[t1][t2]['studies'])

    return G


def get_connected_components(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable]
) -> List[List[Hashable]]:
    """
    Identify connected components where treatments are vertices and studies are edges.

    Components are ordered by their first-seen treatment and treatments within a
    component are listed in first-seen order, so the partition is deterministic.

    Args:
        studies: Study label of each arm
        treatments: Treatment of each arm

    Returns:
        List of components, each a list of treatments

    Example:
        >>> get_connected_components([101, 101, 102, 102], ['A', 'B', 'C', 'B'])
        [['A', 'B', 'C']]
    """
    G = build_evidence_graph(studies, treatments)
    if G.number_of_nodes() == 0:
        return []

    order = _first_seen_index(treatments)
    components = [sorted(component, key=order.__getitem__) for component in nx.connected_components(G)]
    components.sort(key=lambda component: order[component[0]])

    return components
