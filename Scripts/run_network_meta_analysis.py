#!/usr/bin/env python3
"""
Network Meta-Analysis of an arm-level dataset.

Reads one row per study arm from a CSV file, pools the network with the
matching effect measure and writes:
- League table, P-score, study-level and comparison-adjusted funnel CSVs
- Evidence network, league table, funnel and ranking figures
- Analysis metadata (JSON) and a markdown summary

CSV columns:
    binary outcome:     study, treatment, positive, total
    continuous outcome: study, treatment, mean, sd, n

Usage:
    python Scripts/run_network_meta_analysis.py --data smoking.csv --outcome binary --random-effects
    python Scripts/run_network_meta_analysis.py --data trial.csv --config configs/trial.yaml
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for server/script use
import matplotlib.pyplot as plt

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from Synthesis.config import AnalysisConfig, save_analysis_metadata
from Synthesis.nma import odds_ratio_nma, mean_difference_nma
from Synthesis.results import NetworkMetaAnalysis
from Synthesis.statistics import format_result_table, interpret_i_squared
from Synthesis.plots import (
    plot_evidence_network, plot_league_table,
    plot_comparison_adjusted_funnel, plot_p_scores
)


# =============================================================================
# CONFIGURATION
# =============================================================================

REQUIRED_COLUMNS = {
    "binary": ["study", "treatment", "positive", "total"],
    "continuous": ["study", "treatment", "mean", "sd", "n"],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def load_arms(path: str, outcome: str) -> pd.DataFrame:
    """Load arm-level data and check the columns needed for ``outcome``."""
    df = pd.read_csv(path)
    missing = [c for c in REQUIRED_COLUMNS[outcome] if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing column(s) {missing} required for a {outcome} outcome")
    return df


def run_analysis(df: pd.DataFrame, config: AnalysisConfig) -> NetworkMetaAnalysis:
    """Fit the model matching the configured outcome."""
    if config.outcome == "binary":
        return odds_ratio_nma(
            df["study"].tolist(), df["treatment"].tolist(),
            df["positive"].tolist(), df["total"].tolist(),
            random_effects=config.random_effects, config=config.nma
        )
    return mean_difference_nma(
        df["study"].tolist(), df["treatment"].tolist(),
        df["mean"].tolist(), df["sd"].tolist(), df["n"].tolist(),
        random_effects=config.random_effects, config=config.nma
    )


def build_league_rows(nma: NetworkMetaAnalysis, width: float) -> List[Dict]:
    """One row per ordered pair of distinct treatments."""
    rows = []
    treatments = nma.get_treatments()
    for a in treatments:
        for b in treatments:
            if a == b:
                continue
            inferentials = nma.compute_inferential_statistics(a, b, width)
            rows.append({
                "comparison": f"{a} vs {b}",
                "treatment1": a,
                "treatment2": b,
                "effect": nma.get_effect(a, b),
                "lower": inferentials.lower,
                "upper": inferentials.upper,
                "p": inferentials.p,
            })
    return rows


def save_figure(fig: plt.Figure, path: Path) -> None:
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)


def generate_summary(
    nma: NetworkMetaAnalysis,
    config: AnalysisConfig,
    league_rows: List[Dict],
    reference: object
) -> str:
    """Generate markdown summary of the analysis."""
    i_squared = nma.compute_i_squared(config.confidence_level)
    q_test = nma.compute_q_test()
    scores = nma.compute_p_scores(config.smaller_better)

    lines = [
        f"# Network Meta-Analysis: {config.name}",
        "",
        "## Overview",
        "",
        f"- **Effect measure**: {nma.comparison_statistic.value.replace('_', ' ')}",
        f"- **Model**: {'random' if config.random_effects else 'fixed'} effects",
        f"- **Treatments**: {len(nma.get_treatments())}",
        f"- **Study-level contrasts**: {len(nma.study_level_contrasts)}",
        "",
        "## Heterogeneity",
        "",
        f"- Q = {q_test['q']:.3f} on {q_test['df']:.0f} df (p = {q_test['p']:.4f})",
    ]

    if i_squared['i2'] is not None:
        line = f"- I² = {i_squared['i2']:.1%} ({interpret_i_squared(i_squared['i2'])})"
        if i_squared.get('lower') is not None:
            line += f", {config.confidence_level:.0%} CI [{i_squared['lower']:.1%}, {i_squared['upper']:.1%}]"
        lines.append(line)
    else:
        lines.append("- I² not estimable (no residual degrees of freedom)")

    lines.extend([
        "",
        "## Ranking (P-scores)",
        "",
        f"{'Lower' if config.smaller_better else 'Higher'} effects are better.",
        "",
    ])
    lines.extend(f"{rank}. {s.treatment}: {s.p_score:.3f}" for rank, s in enumerate(scores, 1))

    reference_rows = [r for r in league_rows if r["treatment1"] == reference]
    lines.extend([
        "",
        f"## Comparisons vs {reference}",
        "",
        format_result_table(reference_rows),
        "",
        "---",
        "*Generated automatically by run_network_meta_analysis.py*"
    ])

    return "\n".join(lines)


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Run a network meta-analysis on arm-level data"
    )
    parser.add_argument(
        "--data",
        type=str,
        required=True,
        help="CSV file with one row per study arm"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML AnalysisConfig; command-line flags below override it"
    )
    parser.add_argument(
        "--outcome",
        type=str,
        choices=["binary", "continuous"],
        default=None,
        help="Outcome type: 'binary' (odds ratio) or 'continuous' (mean difference)"
    )
    parser.add_argument(
        "--random-effects",
        action="store_true",
        help="Fit a DerSimonian-Laird random-effects model"
    )
    parser.add_argument(
        "--smaller-better",
        action="store_true",
        help="Rank lower effects as better"
    )
    parser.add_argument(
        "--reference",
        type=str,
        default=None,
        help="Reference treatment for study-level effects and the funnel plot"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for tables, figures and the summary"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress verbose output"
    )

    args = parser.parse_args()

    config = AnalysisConfig.from_yaml(args.config) if args.config else AnalysisConfig(name=Path(args.data).stem)
    if args.outcome:
        config.outcome = args.outcome
    if args.random_effects:
        config.random_effects = True
    if args.smaller_better:
        config.smaller_better = True
    if args.reference:
        config.reference_treatment = args.reference
    if args.output_dir:
        config.output_dir = args.output_dir

    output_dir = Path(config.output_dir) / config.name
    figures_dir = output_dir / "figures"
    figures_dir.mkdir(parents=True, exist_ok=True)

    df = load_arms(args.data, config.outcome)
    nma = run_analysis(df, config)
    treatments = nma.get_treatments()

    # CSV labels may be parsed as numbers; match the reference by its string form
    reference = config.reference_treatment
    if reference is None or reference not in treatments:
        matches = [t for t in treatments if str(t) == str(reference)]
        reference = matches[0] if matches else treatments[0]

    verbose = not args.quiet
    if verbose:
        print("=" * 60)
        print(f"NETWORK META-ANALYSIS: {config.name}")
        print("=" * 60)
        print(f"  Arms: {len(df)}, studies: {df['study'].nunique()}, treatments: {len(treatments)}")
        print(f"  Model: {'random' if config.random_effects else 'fixed'} effects, "
              f"{nma.comparison_statistic.value.replace('_', ' ')}")
        print(f"  Reference treatment: {reference}")

    # Tables
    league_rows = build_league_rows(nma, config.confidence_level)
    pd.DataFrame(league_rows).to_csv(output_dir / "league_table.csv", index=False)

    scores = nma.compute_p_scores(config.smaller_better)
    pd.DataFrame([{"treatment": s.treatment, "p_score": s.p_score} for s in scores]).to_csv(
        output_dir / "p_scores.csv", index=False)

    study_effects = nma.compute_study_level_effects(reference, config.confidence_level)
    pd.DataFrame([vars(e) for e in study_effects]).to_csv(
        output_dir / "study_level_effects.csv", index=False)

    funnel = nma.compute_comparison_adjusted_effects(reference, config.confidence_level)
    pd.DataFrame([vars(e) for e in funnel.effects]).to_csv(
        output_dir / "comparison_adjusted_effects.csv", index=False)

    # Figures
    save_figure(plot_evidence_network(df["study"].tolist(), df["treatment"].tolist()),
                figures_dir / "evidence_network.png")
    save_figure(plot_league_table(nma), figures_dir / "league_table.png")
    save_figure(plot_comparison_adjusted_funnel(nma, reference, config.confidence_level),
                figures_dir / "funnel.png")
    save_figure(plot_p_scores(nma, config.smaller_better), figures_dir / "p_scores.png")

    # Summary and metadata
    summary = generate_summary(nma, config, league_rows, reference)
    with open(output_dir / "SUMMARY.md", 'w') as f:
        f.write(summary)

    q_test = nma.compute_q_test()
    metadata_path = save_analysis_metadata(config, str(output_dir), extra_info={
        "data": str(args.data),
        "n_arms": len(df),
        "n_treatments": len(treatments),
        "q": q_test["q"],
        "df": q_test["df"],
        "asymmetry_p": funnel.asymmetry_p,
    })

    if verbose:
        print("\nP-scores:")
        for s in scores:
            print(f"  {str(s.treatment):>12}: {s.p_score:.3f}")
        i_squared = nma.compute_i_squared(config.confidence_level)
        if i_squared['i2'] is not None:
            print(f"\nI² = {i_squared['i2']:.3f} ({interpret_i_squared(i_squared['i2'])})")
        if funnel.asymmetry_p is not None and not np.isnan(funnel.asymmetry_p):
            print(f"Egger test p = {funnel.asymmetry_p:.4f}")
        print(f"\nResults saved to {output_dir}")
        print(f"Metadata saved to {metadata_path}")

    print("\nAnalysis complete!")


if __name__ == "__main__":
    main()
