"""
Derived views: filtered subgraphs and aggregates. Nothing here mutates the store.
"""
from collections import OrderedDict

from graph_editor import config
from graph_editor.store import GraphSnapshot


def filtered_view(store, predicate) -> GraphSnapshot:
    """
    Nodes satisfying ``predicate`` plus only the links whose two endpoints
    both survive the filter.
    """
    keep = [n for n in store.nodes() if predicate(n)]
    keep_ids = {n.id for n in keep}
    # subgraph views never copy or mutate the underlying graph
    H = store.G.subgraph(keep_ids)
    links = tuple(link for link in store.links() if H.has_edge(link.source, link.target))
    return GraphSnapshot(
        nodes=tuple(keep),
        links=links,
        lock_state=store.lock_state,
        revision=store.revision,
    )


def category_is(key):
    return lambda node: node.category == key


def expenses_only(store):
    return filtered_view(store, category_is(config.EXPENSE_CATEGORY))


def _missing(value):
    return value is None or value == ""


def aggregate(nodes, group_key, value):
    """
    Sum ``value(node)`` per ``group_key(node)``. Nodes where either the key
    or the value is missing are left out, not counted as zero.
    """
    totals = {}
    for node in nodes:
        key = group_key(node)
        amount = value(node)
        if _missing(key) or _missing(amount):
            continue
        totals[key] = totals.get(key, 0) + float(amount)
    return totals


def by_month(node):
    return node.month


def by_price(node):
    # an unpriced expense contributes nothing
    return node.price or None


def monthly_expense_summary(store):
    """Expense totals per month, in calendar order."""
    expenses = [n for n in store.nodes() if n.category == config.EXPENSE_CATEGORY]
    totals = aggregate(expenses, by_month, by_price)
    return OrderedDict((m, totals[m]) for m in config.MONTHS if m in totals)


def summary_total(summary):
    return sum(summary.values())
