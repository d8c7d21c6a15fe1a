"""Plotly visualisation helpers for the finance tracker.

Each function accepts a DataFrame or Series produced by
:mod:`finance_tracker.analytics` or :mod:`finance_tracker.investments` and
returns a ``plotly.graph_objects.Figure`` that Streamlit renders with
``st.plotly_chart``.  Empty input yields an empty figure with a "No data to
display" title rather than an error.
"""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

INCOME_COLOR = "#16a34a"
EXPENSE_COLOR = "#dc2626"
SAVINGS_COLOR = "#2563eb"


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_month_comparison_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of income and expenses per month.

    Parameters
    ----------
    monthly : pandas.DataFrame
        Output of :func:`analytics.group_transactions_by_month`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Grouped bar chart with one pair of bars per month.
    """
    if monthly.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(x=monthly["month"], y=monthly["income"], name="Income", marker_color=INCOME_COLOR))
    fig.add_trace(go.Bar(x=monthly["month"], y=monthly["expenses"], name="Expenses", marker_color=EXPENSE_COLOR))
    fig.update_layout(
        title=title or "Monthly comparison",
        barmode="group",
        xaxis_title="Month",
        yaxis_title="Amount",
        legend_title_text="",
    )
    return fig


def create_spending_trends_chart(daily: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Line chart of daily income and expenses.

    Parameters
    ----------
    daily : pandas.DataFrame
        Output of :func:`analytics.group_transactions_by_day`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Two-line chart over a continuous day axis.
    """
    if daily.empty:
        return _empty_figure()
    long_df = daily.melt(
        id_vars="label",
        value_vars=["income", "expenses"],
        var_name="Series",
        value_name="Amount",
    )
    long_df["Series"] = long_df["Series"].str.title()
    fig = px.line(
        long_df,
        x="label",
        y="Amount",
        color="Series",
        color_discrete_map={"Income": INCOME_COLOR, "Expenses": EXPENSE_COLOR},
    )
    fig.update_layout(
        title=title or "Spending trends",
        xaxis_title="Day",
        yaxis_title="Amount",
        legend_title_text="",
    )
    return fig


def create_savings_rate_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Savings rate per month as a line with markers."""
    if monthly.empty:
        return _empty_figure()
    fig = px.line(monthly, x="month", y="savings_rate", markers=True)
    fig.update_traces(line_color=SAVINGS_COLOR)
    fig.update_layout(
        title=title or "Savings rate",
        xaxis_title="Month",
        yaxis_title="Savings rate (%)",
    )
    return fig


def create_category_pie_chart(series: pd.Series, title: str | None = None) -> go.Figure:
    """Pie chart of amounts per category.

    Parameters
    ----------
    series : pandas.Series
        Series indexed by category with summed values.
    title : str, optional
        Title for the chart.
    """
    if series.empty:
        return _empty_figure()
    df = series.reset_index()
    df.columns = ["Category", "Value"]
    df["Category"] = df["Category"].str.title()
    fig = px.pie(df, names="Category", values="Value", hole=0.4)
    fig.update_layout(title=title or "Category breakdown")
    return fig


def create_investment_growth_chart(projection: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Invested amount against projected market value, year by year.

    Parameters
    ----------
    projection : pandas.DataFrame
        Output of :func:`investments.project_investment`.
    title : str, optional
        Chart title.
    """
    if projection.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=projection["year"],
        y=projection["invested_amount"],
        name="Invested",
        marker_color=SAVINGS_COLOR,
    ))
    fig.add_trace(go.Scatter(
        x=projection["year"],
        y=projection["total_market_value"],
        name="Market value",
        mode="lines+markers",
        line=dict(color=INCOME_COLOR),
    ))
    fig.update_layout(
        title=title or "Investment growth",
        xaxis_title="Year",
        yaxis_title="Amount",
        legend_title_text="",
    )
    return fig
