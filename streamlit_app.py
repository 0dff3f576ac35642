import os, random, secrets

import pandas as pd
import streamlit as st

from rng_quality import build_outputs, compare_sources, health_check
from trng_config import (MAX_CACHED_NUMBERS, MAX_UPDATE_POINT, MIN_CACHED_NUMBERS, MIN_UPDATE_POINT,
                         configure_logging, load_settings)
from true_rng import TrueRNG
from randomorg_client import RandomSourceError

SETTINGS = load_settings()
configure_logging(SETTINGS)


@st.cache_resource
def get_supply():
    # one supply per server process; reruns reuse it
    return TrueRNG.from_settings(SETTINGS, on_missing_key=st.warning)


supply = get_supply()

st.sidebar.title("TrueRNG — Settings")
api_key = st.sidebar.text_input("Random.org API Key", SETTINGS.api_key, type="password",
                                help="Developer key from https://api.random.org/dashboard")
enabled = st.sidebar.toggle("Enabled", supply.enabled, help="Quick toggle for the true-random supply")
capacity = st.sidebar.slider("Max cached numbers", MIN_CACHED_NUMBERS, MAX_CACHED_NUMBERS,
                             min(max(supply.capacity, MIN_CACHED_NUMBERS), MAX_CACHED_NUMBERS), 1)
update_point = st.sidebar.slider("Update point (%)", MIN_UPDATE_POINT, MAX_UPDATE_POINT,
                                 int(round(supply.refill_threshold * 100)), 1,
                                 help="Percentage of the cache below which a refetch starts")
st.sidebar.write("---")
hc_total  = st.sidebar.slider("Health-check draws", 50, 2000, 200, 50)
min_ratio = st.sidebar.slider("Min true-random ratio", 0.5, 1.0, 0.90, 0.01)
cmp_draws = st.sidebar.slider("Draws per source", 100, 5000, 1000, 100)
bins      = st.sidebar.slider("Histogram bins", 5, 50, 10, 1)

supply.enabled = enabled
supply.capacity = capacity
supply.refill_threshold = update_point * 0.01
current_key = supply.client.api_key if supply.client else ""
if api_key != current_key:
    supply.configure(api_key)

st.title("TrueRNG — random.org supply")
c1, c2, c3, c4 = st.columns(4)
c1.metric("Cached", f"{len(supply.cache)}/{supply.capacity}")
c2.metric("True-random draws", supply.true_random_count)
c3.metric("Fallback draws", supply.fallback_count)
c4.metric("Refill in flight", "yes" if supply.awaiting_refill else "no")
if st.button("Draw one number"):
    st.write(f"Drew **{supply.get_random_number():.5f}**")
st.caption(f"Last drawn value: {supply.last_drawn_value:.5f}")
if supply.client and st.button("Check random.org quota"):
    try:
        usage = supply.client.get_usage()
        st.write(f"Status **{usage.status}**, bits left {usage.bits_left}, requests left {usage.requests_left}")
    except RandomSourceError as e:
        st.error(f"random.org error: {e.reason}")

st.write("1) Health-check random.org")
ratio = None
if st.button("Run Health-check now"):
    bar = st.progress(0, text="Health-check: drawing…")
    with st.spinner("Health-checking random.org…"):
        hc = health_check(supply, total=hc_total, min_ratio=min_ratio,
                          progress=lambda i, n: bar.progress(int(100*i/n), text=f"Health-check: {i}/{n}"))
    ratio = hc.ratio
    st.text_area("Health-check log", hc.log, height=160)
    st.write(f"True-random ratio: **{hc.ratio:.3f}**")
    if not hc.ok:
        st.warning(f"Health-check ratio below threshold {min_ratio:.2f}. Check the API key or try again later.")

st.write("2) Compare sources")
cond_true   = st.checkbox("TrueRNG (random.org)", True)
cond_pseudo = st.checkbox("Pseudo (random.random)", True)
cond_system = st.checkbox("System (secrets.SystemRandom)", False)
if st.button("Run comparison"):
    sources = {}
    if cond_pseudo: sources['pseudo'] = random.random
    if cond_system: sources['system'] = secrets.SystemRandom().random
    if not sources and not cond_true:
        st.error("Select at least one source."); st.stop()

    with st.spinner("Drawing…"):
        df, samples = compare_sources(sources, n=cmp_draws, bins=bins, supply=supply if cond_true else None)
    st.write("### Summary"); st.dataframe(df)

    status = "OK"
    if ratio is not None and ratio < min_ratio:
        status = "LOW_RATIO"
    out_root = os.path.join(os.path.dirname(__file__), 'TRNG_runs')
    out_dir, csv_path, pdf_path, zip_path, imgs = build_outputs(df, samples, out_root, status, ratio)

    st.write("### Histograms")
    for col, img in zip(st.columns(len(imgs)), imgs):
        col.image(img, caption=os.path.basename(img))
    st.line_chart(pd.DataFrame({k: pd.Series(v[:200]) for k, v in samples.items()}))

    st.write("### Downloads")
    with open(csv_path, "rb") as f: st.download_button("Download summary.csv", f, file_name=os.path.basename(csv_path), mime="text/csv")
    with open(pdf_path, "rb") as f: st.download_button("Download report PDF", f, file_name=os.path.basename(pdf_path), mime="application/pdf")
    with open(zip_path, "rb") as f: st.download_button("Download entire run (.zip)", f, file_name=os.path.basename(zip_path), mime="application/zip")
