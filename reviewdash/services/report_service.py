import base64
import io
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from html import escape
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlencode
from ..schemas import CanonicalReview, ListingAggregate, QueryParams
from .approval_service import stars

STYLE = """
body{font-family:Arial,Helvetica,sans-serif;margin:24px;color:#1f2937;background:#f8f7f4}
.kpi-grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(240px,1fr));gap:16px}
.card,.review-card{background:#fff;border:1px solid #e5e7eb;border-radius:10px;padding:14px}
.review-card.is-approved{border-color:#284e4c}
.muted,.meta{color:#6b7280;font-size:13px}
.controls{margin:24px 0;display:flex;flex-direction:column;gap:10px}
.list{display:flex;flex-direction:column;gap:12px}
.badge{border:1px solid #d1d5db;border-radius:999px;padding:2px 8px;font-size:12px}
.cat-item{margin-right:10px;font-size:12px;color:#4b5563}
.row{display:flex;justify-content:space-between;align-items:center;gap:12px}
"""


def _page(title: str, body: str) -> str:
    return f"""
    <html><head><meta charset='utf-8'><title>{escape(title)}</title>
    <style>{STYLE}</style>
    </head><body>
    {body}
    </body></html>
    """


def _date(iso: Optional[str]) -> str:
    return iso[:10] if iso else ""


def _score(value: Optional[float]) -> str:
    return f"{value:.1f}" if value is not None else "—"


def rating_chart(aggregates: List[ListingAggregate]) -> Optional[str]:
    """Average rating per listing as a base64 PNG."""
    if not aggregates:
        return None
    fig = plt.figure(figsize=(7, max(2.0, 0.5 * len(aggregates))))
    names = [a.listing_name for a in reversed(aggregates)]
    values = [a.avg_rating or 0.0 for a in reversed(aggregates)]
    plt.barh(names, values)
    plt.xlim(0, 10)
    plt.title("Average Rating by Listing (0-10)")
    plt.xlabel("Average rating")
    buf = io.BytesIO()
    fig.savefig(buf, format='png', bbox_inches='tight'); plt.close(fig)
    return base64.b64encode(buf.getvalue()).decode()


def failure_page() -> str:
    return _page("Reviews Dashboard", "<h1>Reviews Dashboard</h1>"
                 "<p style='color:#b91c1c'>Failed to load data. Please try again later.</p>")


def _query_string(params: QueryParams) -> str:
    pairs: List[Tuple[str, str]] = [
        ("listing", params.listing),
        ("min_rating", f"{params.min_rating:g}"),
        ("time", params.time_preset),
        ("sort", params.sort_field),
        ("dir", params.sort_dir),
    ]
    pairs += [("category", c) for c in params.categories]
    pairs += [("channel", c) for c in params.channels]
    if params.custom_start:
        pairs.append(("start", params.custom_start.isoformat()))
    if params.custom_end:
        pairs.append(("end", params.custom_end.isoformat()))
    if params.sort_category:
        pairs.append(("sort_category", params.sort_category))
    return urlencode(pairs)


def _select(name: str, options: Iterable[Tuple[str, str]], selected: Optional[str]) -> str:
    opts = "".join(
        f"<option value='{escape(v)}'{' selected' if v == selected else ''}>{escape(label)}</option>"
        for v, label in options
    )
    return f"<select name='{name}'>{opts}</select>"


def _checkboxes(name: str, values: List[str], checked: List[str]) -> str:
    if not values:
        return f"<span class='muted'>(No {name} values)</span>"
    return " ".join(
        f"<label><input type='checkbox' name='{name}' value='{escape(v)}'{' checked' if v in checked else ''}/> {escape(v)}</label>"
        for v in values
    )


def _kpis(aggregates: List[ListingAggregate]) -> str:
    cards = []
    for a in aggregates:
        issues = " · ".join(f"{escape(t.name)}:{t.avg:g}" for t in a.top_issues)
        cards.append(
            f"<div class='card'><div style='font-weight:600'>{escape(a.listing_name)}</div>"
            f"<div class='meta'>Average: {a.avg_rating if a.avg_rating is not None else '—'} · "
            f"Reviews: {a.review_count} · Last 30 days: {a.last30d_count}</div>"
            f"<div class='muted'>Top issues: {issues}</div></div>"
        )
    return f"<section class='kpi-grid'>{''.join(cards)}</section>"


def _controls(params: QueryParams, listings: List[Tuple[str, str]], categories: List[str], channels: List[str]) -> str:
    time_opts = [("all", "All"), ("7d", "Last 7 days"), ("30d", "Last 30 days"), ("90d", "Last 90 days"), ("custom", "Custom")]
    sort_opts = [("date", "Date"), ("rating", "Rating"), ("channel", "Channel"), ("category", "Category rating")]
    dir_opts = [("desc", "Desc ↓"), ("asc", "Asc ↑")]
    start = params.custom_start.isoformat() if params.custom_start else ""
    end = params.custom_end.isoformat() if params.custom_end else ""
    return f"""
    <form class='controls' method='get' action='/'>
      <div>Listing: {_select('listing', [('all', 'All')] + listings, params.listing)}
        Min rating: <input type='number' name='min_rating' min='0' max='10' step='0.5' value='{params.min_rating:g}'/> (0–10)
        <a href='/public'>Review Display Page</a> · <a href='/'>Clear filters</a></div>
      <div>Category: {_checkboxes('category', categories, params.categories)}</div>
      <div>Channel: {_checkboxes('channel', channels, params.channels)}</div>
      <div>Time: {_select('time', time_opts, params.time_preset)}
        Start: <input type='date' name='start' value='{start}'/> End: <input type='date' name='end' value='{end}'/></div>
      <div>Sort by: {_select('sort', sort_opts, params.sort_field)}
        Direction: {_select('dir', dir_opts, params.sort_dir)}
        Category: {_select('sort_category', [('', '— Select —')] + [(c, c) for c in categories], params.sort_category or '')}
        <button type='submit'>Apply</button></div>
    </form>
    """


def _categories_line(r: CanonicalReview) -> str:
    return "".join(f"<span class='cat-item'>{escape(c.name)}: {c.rating:g}</span>" for c in r.categories)


def dashboard_page(aggregates: List[ListingAggregate], visible: List[CanonicalReview], params: QueryParams,
                   approved: Set[str], listings: List[Tuple[str, str]], categories: List[str],
                   channels: List[str]) -> str:
    back = "/?" + _query_string(params)
    items = []
    for r in visible:
        is_approved = r.review_id in approved
        toggle_url = "/approvals/toggle?" + urlencode({"review_id": r.review_id, "next": back})
        items.append(f"""
        <div class='review-card{' is-approved' if is_approved else ''}'>
          <div class='row'><div style='font-weight:600'>{escape(r.guest_name or 'Guest')}</div>
            <div><span class='badge'>{escape(r.channel)}</span> Rating: {_score(r.rating_overall)}</div></div>
          <div class='muted'>{escape(r.listing_name)}</div>
          <p>{escape(r.text)}</p>
          <div>{_categories_line(r)}</div>
          <div class='row meta'><div>{_date(r.submitted_at)}</div>
            <form method='post' action='{escape(toggle_url)}'>
              <button type='submit'>{'Approved ✓ (undo)' if is_approved else 'Approve for website'}</button>
            </form></div>
        </div>""")
    if not visible:
        items.append("<div class='muted'>No reviews match the filters. Try relaxing the filter conditions.</div>")

    chart = rating_chart(aggregates)
    chart_html = f"<h3>Ratings</h3><img src='data:image/png;base64,{chart}' />" if chart else ""
    body = (
        "<h1>Reviews Dashboard</h1>"
        + _kpis(aggregates)
        + chart_html
        + _controls(params, listings, categories, channels)
        + f"<section class='list'>{''.join(items)}</section>"
    )
    return _page("Reviews Dashboard", body)


def _public_review(r: CanonicalReview) -> str:
    return f"""
    <article class='review-card'>
      <div class='row'><div><div style='font-weight:700'>{escape(r.guest_name or 'Guest')}</div>
        <div class='muted'>{escape(r.listing_name)}</div></div>
        <div>{_score(r.rating_overall)}{' / 10' if r.rating_overall is not None else ''}</div></div>
      <div class='muted'><span aria-label='stars'>{stars(r.rating_overall)}</span>
        {'Rated experience' if r.rating_overall is not None else 'No score provided'}</div>
      <p>{escape(r.text)}</p>
      <div>{_categories_line(r)}</div>
      <footer class='meta'>{_date(r.submitted_at)}</footer>
    </article>"""


def public_page(visible: List[CanonicalReview], summary: Dict, listings: List[Tuple[str, str]], selected: str) -> str:
    if visible:
        reviews_html = "".join(_public_review(r) for r in visible)
    else:
        reviews_html = ("<div class='card'><div style='font-weight:600'>No approved reviews yet</div>"
                        "<div class='muted'>Go to Dashboard and approve reviews to publish them.</div></div>")
    avg = f"Average {summary['avg']} / 10" if summary["avg"] is not None else "No average yet"
    plural = "s" if summary["count"] > 1 else ""
    body = f"""
    <div class='row'><h1>Guest Reviews</h1><a href='/'>Dashboard</a></div>
    <aside class='card'><h3>Overview</h3>
      <div class='muted'>{avg} · {summary['count']} approved review{plural}</div>
      <form method='get' action='/public'>{_select('listing', [('all', 'All')] + listings, selected)}
        <button type='submit'>Show</button></form>
      <div class='muted'>Showing only the reviews you approved in Dashboard.</div></aside>
    <section class='list'>{reviews_html}</section>
    """
    return _page("Guest Reviews", body)


def listing_public_page(listing_name: str, aggregate: Optional[ListingAggregate], visible: List[CanonicalReview]) -> str:
    if aggregate is not None and aggregate.avg_rating is not None:
        headline = f"Average {aggregate.avg_rating:.1f} / 10"
    else:
        headline = "No average yet"
    total = aggregate.review_count if aggregate is not None else 0
    reviews_html = "".join(_public_review(r) for r in visible) or "<div class='muted'>No approved reviews for this property yet.</div>"
    body = f"""
    <h1>{escape(listing_name)}</h1>
    <div class='muted'>{headline} · {total} reviews total</div>
    <h2>Guest reviews</h2>
    <section class='list'>{reviews_html}</section>
    """
    return _page(listing_name, body)
