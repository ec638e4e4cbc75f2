"""
Figures for network meta-analysis reports.

Every function returns a matplotlib Figure and optionally saves it to
``save_path``. Callers running headless should select the Agg backend
before importing this module.
"""

from typing import Hashable, Sequence

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
import networkx as nx

from .graph import build_evidence_graph
from .results import ComparisonStatistic, NetworkMetaAnalysis


def plot_evidence_network(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable],
    title: str = "Evidence Network",
    save_path: str = None
) -> plt.Figure:
    """
    Draw the network of direct comparisons.

    Args:
        studies: Study label of each arm
        treatments: Treatment of each arm
        title: Plot title
        save_path: If provided, save figure to this path

    Returns:
        matplotlib Figure
    """
    G = build_evidence_graph(list(studies), list(treatments))

    fig, ax = plt.subplots(figsize=(8, 8))

    pos = nx.circular_layout(G)
    widths = [G[u][v]['weight'] for u, v in G.edges()]
    arms_per_treatment = {node: 0 for node in G.nodes()}
    for treatment in treatments:
        arms_per_treatment[treatment] += 1

    nx.draw_networkx_edges(G, pos, ax=ax, width=widths, edge_color='gray', alpha=0.7)
    nx.draw_networkx_nodes(G, pos, ax=ax, node_color='#3498db',
                           node_size=[300 + 100 * arms_per_treatment[n] for n in G.nodes()])
    nx.draw_networkx_labels(G, pos, ax=ax, labels={n: str(n) for n in G.nodes()}, font_size=10)
    nx.draw_networkx_edge_labels(G, pos, ax=ax, font_size=8,
                                 edge_labels={(u, v): G[u][v]['weight'] for u, v in G.edges()})

    ax.set_title(title)
    ax.axis('off')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_league_table(
    nma: NetworkMetaAnalysis,
    title: str = "League Table",
    save_path: str = None
) -> plt.Figure:
    """
    Heatmap of every pooled pairwise effect (row treatment vs. column treatment).

    Cross-component cells carry no evidence and are left blank.
    """
    treatments = nma.get_treatments()
    n = len(treatments)
    effects = np.array([[nma.get_effect(a, b) for b in treatments] for a in treatments])

    is_ratio = nma.comparison_statistic is ComparisonStatistic.OR
    # diverge around the null effect; log scale for ratios
    shown = np.log(effects) if is_ratio else effects
    labels = [str(t) for t in treatments]

    fig, ax = plt.subplots(figsize=(max(6, 0.9 * n + 2), max(5, 0.8 * n + 1)))
    sns.heatmap(shown, ax=ax, cmap='RdBu_r', center=0, annot=effects, fmt='.2f',
                xticklabels=labels, yticklabels=labels,
                cbar_kws={'label': 'log OR' if is_ratio else 'Mean difference'})
    ax.set_xlabel('Comparator')
    ax.set_ylabel('Treatment')
    ax.set_title(title)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_comparison_adjusted_funnel(
    nma: NetworkMetaAnalysis,
    treatment: Hashable,
    level: float = 0.95,
    save_path: str = None
) -> plt.Figure:
    """
    Comparison-adjusted funnel plot around ``treatment``.

    Args:
        nma: Fitted model
        treatment: Reference treatment
        level: Confidence level of the funnel
        save_path: If provided, save figure

    Returns:
        matplotlib Figure
    """
    adjusted = nma.compute_comparison_adjusted_effects(treatment, level)

    fig, ax = plt.subplots(figsize=(8, 6))

    left_x, left_y = zip(*adjusted.left_funnel)
    right_x, right_y = zip(*adjusted.right_funnel)
    ax.plot(left_x, left_y, color='black', linestyle='--', alpha=0.6)
    ax.plot(right_x, right_y, color='black', linestyle='--', alpha=0.6,
            label=f'{level:.0%} pseudo-confidence region')

    comparators = sorted({e.treatment2 for e in adjusted.effects}, key=str)
    colors = plt.cm.Set2(np.linspace(0, 1, max(len(comparators), 1)))
    for color, comparator in zip(colors, comparators):
        points = [e for e in adjusted.effects if e.treatment2 == comparator]
        ax.scatter([e.effect for e in points], [e.se for e in points], color=color,
                   s=50, edgecolor='black', label=f'{treatment} vs {comparator}')

    null_effect = 1.0 if nma.comparison_statistic is ComparisonStatistic.OR else 0.0
    ax.axvline(null_effect, color='black', linestyle='-', alpha=0.3)
    if nma.comparison_statistic is ComparisonStatistic.OR:
        ax.set_xscale('log')

    ax.invert_yaxis()
    ax.set_xlabel('Comparison-adjusted effect')
    ax.set_ylabel('Standard error')

    title = f'Comparison-Adjusted Funnel ({treatment})'
    if adjusted.asymmetry_p is not None:
        title += f'\n{adjusted.asymmetry_test} test p = {adjusted.asymmetry_p:.4f}'
    ax.set_title(title)
    ax.legend(loc='lower right', fontsize=8)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_p_scores(
    nma: NetworkMetaAnalysis,
    smaller_better: bool,
    title: str = "Treatment Ranking (P-scores)",
    save_path: str = None
) -> plt.Figure:
    """Horizontal bar chart of P-scores, best treatment on top."""
    scores = nma.compute_p_scores(smaller_better)

    fig, ax = plt.subplots(figsize=(8, max(3, 0.5 * len(scores) + 1)))

    y = np.arange(len(scores))
    values = [s.p_score for s in scores]
    bars = ax.barh(y, values, color='#2ecc71')
    ax.set_yticks(y)
    ax.set_yticklabels([str(s.treatment) for s in scores])
    ax.invert_yaxis()
    ax.set_xlim(0, 1.1)
    ax.set_xlabel('P-score')
    ax.set_title(title)
    ax.axvline(0.5, color='black', linestyle='--', alpha=0.3)

    for bar, value in zip(bars, values):
        ax.text(bar.get_width() + 0.02, bar.get_y() + bar.get_height() / 2,
                f'{value:.2f}', va='center', fontsize=9)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
