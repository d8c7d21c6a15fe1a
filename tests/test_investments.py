import pytest

from finance_tracker.errors import ValidationError
from finance_tracker.investments import PROJECTION_COLUMNS, project_investment, projection_summary
from finance_tracker.models import InvestmentSettings, validate_investment_settings


def test_contributions_stop_after_invested_duration():
    projection = project_investment(
        InvestmentSettings(yearly_amount=100000, return_rate=10, invested_duration=2, total_duration=3)
    )

    assert list(projection.columns) == PROJECTION_COLUMNS
    assert list(projection['year']) == [1, 2, 3]
    assert list(projection['contribution']) == [100000, 100000, 0]
    assert list(projection['invested_amount']) == [100000, 200000, 200000]
    assert projection['yearly_return'].tolist() == pytest.approx([10000, 21000, 23100])
    assert projection['monthly_return'].iloc[0] == pytest.approx(10000 / 12)
    assert projection['total_market_value'].tolist() == pytest.approx([110000, 231000, 254100])


def test_projection_summary():
    projection = project_investment(
        InvestmentSettings(yearly_amount=100000, return_rate=10, invested_duration=2, total_duration=3)
    )
    summary = projection_summary(projection)

    assert summary['invested_amount'] == 200000
    assert summary['total_market_value'] == pytest.approx(254100)
    assert summary['total_gain'] == pytest.approx(54100)


def test_zero_duration_gives_empty_projection():
    projection = project_investment(InvestmentSettings(yearly_amount=5000, invested_duration=0, total_duration=0))
    assert projection.empty
    assert projection_summary(projection) == {'invested_amount': 0.0, 'total_market_value': 0.0, 'total_gain': 0.0}


def test_zero_rate_only_accumulates_contributions():
    projection = project_investment(
        InvestmentSettings(yearly_amount=1200, return_rate=0, invested_duration=5, total_duration=5)
    )
    assert projection['total_market_value'].iloc[-1] == 6000
    assert (projection['yearly_return'] == 0).all()


def test_total_duration_shorter_than_invested_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_investment_settings(InvestmentSettings(yearly_amount=1000, invested_duration=10, total_duration=5))
    assert str(excinfo.value) == "Total duration must be greater than or equal to invested duration"
    assert excinfo.value.field == 'total_duration'


def test_negative_yearly_amount_is_rejected():
    with pytest.raises(ValidationError):
        validate_investment_settings(InvestmentSettings(yearly_amount=-1))
