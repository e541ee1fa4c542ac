"""
interfaces/streamlit_app.py
──────────────────────────────────────────────────────────────────────────────
Streamlit UI for browsing the records taxonomy.

Run:
  streamlit run records_taxonomy/interfaces/streamlit_app.py

Features:
  • Browse: function → service → activity drill-down with document types and
    retention rules per country
  • Search: keyword search across every level, ranked by relevance
  • Autocomplete: live path completion as you type
  • Suggest: best-guess path for a document title / flat type
  • CSV download of every table

Read-only: needs taxonomy definitions but no document store credentials.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# ── Path setup ─────────────────────────────────────────────────────────────
# Allow running from the repo root with: streamlit run records_taxonomy/interfaces/streamlit_app.py
_REPO_ROOT = Path(__file__).parent.parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from records_taxonomy.domain.taxonomy import TaxonomyTree
from records_taxonomy.services.container import get_registry
from records_taxonomy.services.resolver import PathResolver
from records_taxonomy.services.suggester import PathSuggester

logger = logging.getLogger(__name__)

# ── Page configuration ─────────────────────────────────────────────────────
st.set_page_config(
    page_title="Records Taxonomy",
    page_icon="🗂️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ── CSS ────────────────────────────────────────────────────────────────────
st.markdown(
    """
    <style>
    [data-testid="stSidebar"] {
        background: linear-gradient(180deg, #0a1628 0%, #1a3a5c 100%);
    }
    [data-testid="stSidebar"] * { color: #e8f0fe !important; }
    .stApp { background-color: #f4f6f9; }

    .path-card {
        background: white;
        border-left: 5px solid #2563eb;
        border-radius: 6px;
        padding: 14px 18px;
        margin-bottom: 12px;
        box-shadow: 0 1px 4px rgba(0,0,0,0.08);
    }
    .path-card .path { font-size: 1.05em; font-weight: 600; color: #1e293b; }
    .path-card .meta { font-size: 0.85em; color: #64748b; margin-top: 4px; }
    </style>
    """,
    unsafe_allow_html=True,
)


# ── Backend singleton ──────────────────────────────────────────────────────

@st.cache_resource(show_spinner="Loading taxonomies…")
def _load_registry():
    """Loads and caches the TaxonomyRegistry for the lifetime of the app."""
    return get_registry()


# ── Sidebar ────────────────────────────────────────────────────────────────

def _render_sidebar(registry) -> str | None:
    with st.sidebar:
        st.markdown("## 🗂️ Taxonomy")
        st.markdown("---")
        entity_types = registry.entity_types()
        if not entity_types:
            st.error("No taxonomy definitions found.")
            return None
        entity_type = st.selectbox("Entity type", entity_types, key="entity_type")
        st.markdown(f"**Country:** {registry.country}")

        tree = registry.load(entity_type)
        st.metric("Functions", len(tree.functions))
        st.metric("Document types", len(tree.all_document_types()))
        if not tree.is_complete():
            st.warning("This taxonomy is incomplete and cannot be installed.")

        st.markdown("---")
        st.markdown(
            f"<small style='color:#8facc8'>{entity_type} v{tree.version}</small>",
            unsafe_allow_html=True,
        )
    return entity_type


# ── Tables ─────────────────────────────────────────────────────────────────

def _activities_df(tree: TaxonomyTree, country: str) -> pd.DataFrame:
    rows = []
    for fn, svc, act in tree.walk():
        rule = act.retention.get(country)
        rows.append({
            "Function": fn.name,
            "Service": svc.name,
            "Activity": act.name,
            "Document types": ", ".join(act.document_types),
            "Retention (years)": (
                "permanent" if rule and rule.is_permanent
                else rule.years if rule else None
            ),
            "Authority": rule.authority if rule else "",
        })
    return pd.DataFrame(rows)


def _download(df: pd.DataFrame, name: str) -> None:
    st.download_button(
        "⬇ Download CSV", df.to_csv(index=False).encode(), file_name=name, mime="text/csv"
    )


# ── Tabs ───────────────────────────────────────────────────────────────────

def _render_browse(tree: TaxonomyTree, resolver: PathResolver, country: str) -> None:
    c1, c2, c3 = st.columns(3)
    function = c1.selectbox("Function", ["(all)"] + tree.function_names())
    services = tree.service_names(function) if function != "(all)" else []
    service = c2.selectbox("Service", ["(all)"] + services)
    activities = tree.activity_names(function, service) if service != "(all)" else []
    activity = c3.selectbox("Activity", ["(all)"] + activities)

    if activity != "(all)":
        parsed = resolver.parse(f"{function}/{service}/{activity}")
        st.markdown(
            f"""
            <div class="path-card">
                <div class="path">{function} / {service} / {activity}</div>
                <div class="meta">{resolver.generate_storage_path(
                    tree.entity_type, function, service, activity)}</div>
            </div>
            """,
            unsafe_allow_html=True,
        )
        st.markdown("**Document types**")
        st.write(parsed.document_types)
        st.markdown("**Retention**")
        st.dataframe(
            pd.DataFrame([
                {"Country": c, "Years": r.years, "Authority": r.authority,
                 "From": r.from_date.value if r.from_date else "", "Notes": r.notes or ""}
                for c, r in (parsed.retention or {}).items()
            ]),
            use_container_width=True,
        )
        st.markdown("**Tags**")
        st.write(resolver.generate_hierarchical_tags(function, service, activity))
        return

    df = _activities_df(tree, country)
    if function != "(all)":
        df = df[df["Function"] == function]
    if service != "(all)":
        df = df[df["Service"] == service]
    st.dataframe(df, use_container_width=True)
    _download(df, f"{tree.entity_type}_activities.csv")


def _render_search(resolver: PathResolver) -> None:
    keyword = st.text_input("Keyword", placeholder="e.g.  tax, dental, electricity …")
    if not keyword.strip():
        st.info("Enter a keyword to search functions, services and activities.")
        return
    matches = resolver.search_by_keyword(keyword)
    if not matches:
        st.warning("No matches.")
        return
    df = pd.DataFrame([
        {"Path": m.path, "Match": m.match_type.value, "Relevance": m.relevance}
        for m in matches
    ])
    st.dataframe(df, use_container_width=True)
    _download(df, "search_results.csv")


def _render_autocomplete(resolver: PathResolver) -> None:
    partial = st.text_input("Path", placeholder="e.g.  HealthManagement/med")
    fuzzy = st.checkbox("Fuzzy matching", value=True)
    result = resolver.autocomplete(partial, limit=20, fuzzy=fuzzy)
    label = result.types[0].value if result.types else ""
    st.caption(f"Suggesting: {label} · levels remaining: {result.remaining}")
    for suggestion in result.suggestions:
        st.markdown(f"- `{suggestion}`")


def _render_suggest(resolver: PathResolver, entity_type: str, country: str) -> None:
    title = st.text_input("Document title", placeholder="e.g.  Origin electricity bill Q3")
    doc_type = st.text_input("Flat document type (optional)")
    if not st.button("Suggest", type="primary"):
        return
    suggestion = PathSuggester(resolver, entity_type, country).suggest(title, doc_type or None)
    if not suggestion.path:
        st.warning("No confident suggestion for this document.")
        return
    c1, c2 = st.columns(2)
    c1.metric("Confidence", f"{suggestion.confidence:.0f}%")
    c2.metric(
        "Retention",
        f"{suggestion.retention_years} yrs" if suggestion.retention_years is not None else "—",
    )
    st.json(suggestion.to_dict())


# ── Main ───────────────────────────────────────────────────────────────────

def main() -> None:
    st.title("🗂️ Records Taxonomy Browser")
    st.caption("Function → Service → Activity → Document type, with retention rules.")

    registry = _load_registry()
    entity_type = _render_sidebar(registry)
    if entity_type is None:
        return

    tree = registry.load(entity_type)
    resolver = registry.resolver(entity_type)

    tab_browse, tab_search, tab_auto, tab_suggest = st.tabs(
        ["🌳 Browse", "🔍 Search", "⌨️ Autocomplete", "💡 Suggest"]
    )
    with tab_browse:
        _render_browse(tree, resolver, registry.country)
    with tab_search:
        _render_search(resolver)
    with tab_auto:
        _render_autocomplete(resolver)
    with tab_suggest:
        _render_suggest(resolver, entity_type, registry.country)


if __name__ == "__main__":
    main()
