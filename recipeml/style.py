from __future__ import annotations

from pathlib import Path
import os

# Shared palette (colorblind-aware, muted)
COLORS = {
    "primary": "#1B4965",
    "secondary": "#5FA8D3",
    "event": "#CA6702",
    "other": "#6A994E",
    "accent": "#9B2226",
    "neutral": "#495057",
}


def set_plot_style(outputs_dir: str | None = None, interactive: bool = False) -> None:
    """Apply one plotting style across tuning and evaluation figures.

    Figures are written as PDF. The non-interactive Agg backend is the
    default unless ``interactive`` is set (figures will then also be shown).
    """
    if outputs_dir is None:
        outputs_dir = os.getenv("RECIPEML_OUTPUTS_DIR", "outputs")

    if not interactive:
        os.environ.setdefault("MPLBACKEND", "Agg")
    mpl_config_dir = Path(outputs_dir) / ".mplconfig"
    mpl_config_dir.mkdir(parents=True, exist_ok=True)
    os.environ.setdefault("MPLCONFIGDIR", str(mpl_config_dir))

    # Import inside the function so this module stays lightweight.
    import matplotlib.pyplot as plt
    import seaborn as sns

    sns.set_theme(context="paper", style="ticks")
    plt.rcParams.update({
        "figure.dpi": 150,
        "savefig.dpi": 200,
        "savefig.bbox": "tight",
        "axes.spines.top": False,
        "axes.spines.right": False,
        "axes.grid": True,
        "grid.alpha": 0.25,
        "grid.linewidth": 0.6,
        "lines.linewidth": 1.6,
        "font.size": 10.0,
        "axes.titlesize": 11.0,
        "legend.fontsize": 9.0,
        # Embed TrueType fonts in vector exports.
        "pdf.fonttype": 42,
    })
