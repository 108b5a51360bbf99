from dsqlgen.tui.progress import ProgressState


def test_default_label():
    assert ProgressState().label() == "0/0 (0.0%)"


def test_label_uses_fields():
    state = ProgressState(completed=5, total=10, pct=50.0)
    assert state.label() == "5/10 (50.0%)"


def test_label_rounds_to_one_decimal():
    state = ProgressState(completed=1, total=3, pct=100.0 / 3)
    assert state.label() == "1/3 (33.3%)"


def test_percent_truncates():
    state = ProgressState(completed=1, total=3, pct=66.9)
    assert state.percent == 66


def test_percent_is_bounded():
    assert ProgressState(pct=150.0).percent == 100
    assert ProgressState(pct=-5.0).percent == 0