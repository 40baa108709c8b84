from __future__ import annotations

import html
from pathlib import Path
from typing import Tuple

from ratesim.sde.schemas import EquilibriumType, ModelConfig, VolatilityType

HTML_TEMPLATE = """
<html>
<head>
<title>Interest Rate Simulation Report</title>
<script src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-chtml.js"></script>
<style>
body {{ font-family: Arial; margin: 40px; }}
h1 {{ color: #333; }}
table {{ border-collapse: collapse; width: 70%; margin-bottom: 40px; }}
td, th {{ border: 1px solid #ccc; padding: 8px; }}
</style>
</head>
<body>

<h1>Interest Rate Simulation Report</h1>

<h2>Model</h2>
<p>{sde_general}</p>
<p>{sde_substituted}</p>

<h2>Parameters</h2>
<table>
<tr><th>Parameter</th><th>Value</th></tr>
{parameter_rows}
</table>

<h2>Median and {confidence_pct}% band (first 10 rows)</h2>
{summary_table}

</body>
</html>
"""


def sde_latex(cfg: ModelConfig) -> Tuple[str, str]:
    """
    The model SDE in LaTeX: the general form and the form with the
    configured parameters substituted.
    """
    dynamic_theta = cfg.equilibrium_type is EquilibriumType.DYNAMIC
    cev = cfg.volatility_type is VolatilityType.CEV

    level = r"\theta(t)" if dynamic_theta else r"\bar{r}"
    vol = r"\sigma r^{\gamma}" if cev else r"\sigma(t)"
    general = rf"$$dr = -\alpha (r - {level}) dt + {vol} dW(t)$$"

    level_sub = f"({cfg.theta_expr})" if dynamic_theta else f"{cfg.r_bar}"
    vol_sub = f"{cfg.sigma} r^{{{cfg.gamma}}}" if cev else f"({cfg.sigma_expr})"
    substituted = rf"$$dr = -{cfg.alpha} (r - {level_sub}) dt + {vol_sub} dW(t)$$"
    return general, substituted


def _parameter_rows(cfg: ModelConfig) -> str:
    rows = [("Equilibrium type", cfg.equilibrium_type.value)]
    if cfg.equilibrium_type is EquilibriumType.DYNAMIC:
        rows.append(("theta(t)", cfg.theta_expr))
    else:
        rows.append(("r_bar", cfg.r_bar))
    rows.append(("alpha", cfg.alpha))
    rows.append(("Volatility type", cfg.volatility_type.value))
    if cfg.volatility_type is VolatilityType.CEV:
        rows.extend([("sigma", cfg.sigma), ("gamma", cfg.gamma)])
    else:
        rows.append(("sigma(t)", cfg.sigma_expr))
    rows.extend(
        [
            ("r0", cfg.r0),
            ("T", cfg.horizon),
            ("steps", cfg.steps),
            ("paths", cfg.n_paths),
            ("confidence level", cfg.confidence_level),
        ]
    )
    return "\n".join(
        f"<tr><td>{html.escape(str(k))}</td><td>{html.escape(str(v))}</td></tr>"
        for k, v in rows
    )


def generate_html_report(result, path: str | Path) -> Path:
    """Write a static report for a SimulationResult."""
    cfg = result.config
    general, substituted = sde_latex(cfg)

    page = HTML_TEMPLATE.format(
        sde_general=html.escape(general),
        sde_substituted=html.escape(substituted),
        parameter_rows=_parameter_rows(cfg),
        confidence_pct=f"{100 * cfg.confidence_level:g}",
        summary_table=result.summary.to_frame().head(10).to_html(index=False),
    )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(page)
    return path
