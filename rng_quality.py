import io, os, shutil, time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.metrics import mutual_info_score


@dataclass
class HealthCheck:
    ok: bool
    ratio: float
    log: str
    values: List[float] = field(default_factory=list)


def health_check(supply, total=200, min_ratio=0.9, wait=0.2, max_wait=10.0, sleep=time.sleep, progress=None):
    """Draw ``total`` values through the supply, waiting on refills while the cache is empty.
    Once ``max_wait`` seconds have been spent waiting the remaining draws fall back.
    """
    log = io.StringIO()
    q0, f0 = supply.true_random_count, supply.fallback_count
    values, waited = [], 0.0
    while len(values) < total:
        if not supply.cache and waited < max_wait:
            started = supply.trigger_refill()
            print(f"cache empty after {len(values)} draws, refill {'started' if started else 'pending'}", file=log)
            sleep(wait); waited += wait
            continue
        values.append(supply.get_random_number())
        if progress: progress(len(values), total)
    q = supply.true_random_count - q0; f = supply.fallback_count - f0
    ratio = q / max(1, q+f)
    print(f"COMPLETE → true_random={q}, fallback={f}, ratio={ratio:.3f}, waited={waited:.1f}s", file=log)
    return HealthCheck(ratio >= min_ratio, ratio, log.getvalue(), values)


def serial_mutual_information(values, bins=10) -> float:
    """Lag-1 mutual information (nats) between successive binned draws."""
    v = np.asarray(values, dtype=float)
    if len(v) < 3:
        return 0.0
    dig = np.minimum((v*bins).astype(int), bins-1)
    return float(mutual_info_score(dig[:-1], dig[1:]))


def summarize(name, values, bins=10) -> Dict:
    v = np.asarray(values, dtype=float)
    counts, _ = np.histogram(v, bins=bins, range=(0.0, 1.0))
    expected = len(v) / bins
    chi2 = float(((counts - expected)**2 / expected).sum()) if len(v) else float('nan')
    return {
        'source': name,
        'n': int(len(v)),
        'mean': float(v.mean()) if len(v) else float('nan'),
        'std': float(v.std()) if len(v) else float('nan'),
        'chi2_uniform': chi2,
        'chi2_dof': bins - 1,
        'serial_MI': serial_mutual_information(v, bins),
    }


def compare_sources(sources: Dict[str, Callable[[], float]], n=1000, bins=10, supply=None,
                    supply_name='true', **wait_kwargs):
    """Summaries per source. A ``supply`` is drawn through health_check so it waits on
    refills, and its row carries how many draws were true-random vs fallback.
    """
    samples = {name: [fn() for _ in range(n)] for name, fn in sources.items()}
    rows = [summarize(name, vals, bins) for name, vals in samples.items()]
    if supply is not None:
        q0, f0 = supply.true_random_count, supply.fallback_count
        samples[supply_name] = health_check(supply, total=n, **wait_kwargs).values
        row = summarize(supply_name, samples[supply_name], bins)
        row['true_random'] = supply.true_random_count - q0
        row['fallback'] = supply.fallback_count - f0
        rows.insert(0, row)
        samples = {supply_name: samples.pop(supply_name), **samples}
    df = pd.DataFrame(rows)
    return df, samples


def save_hist(values, title, path, bins=20):
    fig, ax = plt.subplots()
    ax.hist(values, bins=bins, range=(0.0, 1.0))
    ax.set_title(title); ax.set_xlabel("Value"); ax.set_ylabel("Count")
    fig.savefig(path, bbox_inches="tight"); plt.close(fig)


def build_outputs(df, samples, out_root, status="OK", ratio=None):
    now = datetime.now(timezone.utc)
    out_dir = os.path.join(out_root, f"{now.strftime('%Y%m%d_%H%M%S')}_trng_{status}")
    os.makedirs(out_dir, exist_ok=True)
    csv_path = os.path.join(out_dir, 'summary.csv')
    df.to_csv(csv_path, index=False)
    imgs = []
    for name, vals in samples.items():
        p = os.path.join(out_dir, f"hist_{name}.png")
        save_hist(vals, f"Draw distribution — {name}", p)
        imgs.append(p)

    from reportlab.pdfgen import canvas
    from reportlab.lib.pagesizes import letter
    from reportlab.lib.utils import ImageReader
    pdf_path = os.path.join(out_dir, f"TrueRNG_Report_{status}.pdf")
    c = canvas.Canvas(pdf_path, pagesize=letter); w, h = letter
    c.setFont("Helvetica-Bold", 16); c.drawCentredString(w/2, h-40, "TrueRNG — Source Comparison")
    c.setFont("Helvetica", 10)
    c.drawString(40, h-60, f"UTC Timestamp: {now.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    if ratio is not None:
        c.drawString(40, h-75, f"True-random ratio (health-check): {ratio:.3f}")
    c.setFont("Helvetica-Bold", 12); c.drawString(40, h-100, "Summary")
    c.setFont("Helvetica", 10); y = h-118
    for _, row in df.iterrows():
        line = f"{row['source']:<10}  n={int(row['n'])}  mean={row['mean']:.4f}  std={row['std']:.4f}  chi2={row['chi2_uniform']:.2f}  MI={row['serial_MI']:.4f}"
        c.drawString(40, y, line[:110]); y -= 14
        if pd.notna(row.get("true_random")):
            c.drawString(60, y, f"true-random draws={int(row['true_random'])}  fallback draws={int(row['fallback'])}"); y -= 14
    for img in imgs:
        c.showPage(); c.drawImage(ImageReader(img), 60, 200, width=w-120, height=300, preserveAspectRatio=True, mask='auto')
    c.save()

    zip_path = shutil.make_archive(out_dir, 'zip', out_dir)
    return out_dir, csv_path, pdf_path, zip_path, imgs
