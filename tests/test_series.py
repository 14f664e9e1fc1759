from clockwatch.series import Series


def test_bounded_keeps_most_recent_in_order():
    s = Series(capacity=5)
    for i in range(12):
        s.append(i * 0.1, float(i))
    assert len(s) == 5
    assert s.values == [7.0, 8.0, 9.0, 10.0, 11.0]
    assert len(s.timestamps) == len(s.values)
    assert abs(s.timestamps[0] - 0.7) < 1e-9
    assert s.appended == 12


def test_tail_shorter_than_requested():
    s = Series(capacity=10)
    s.append(0.0, 1.0)
    s.append(1.0, 2.0)
    assert s.tail(5) == ([0.0, 1.0], [1.0, 2.0])
    assert s.tail(1) == ([1.0], [2.0])
    assert s.tail(0) == ([], [])


def test_clear_and_rewrite_change_generation():
    s = Series(capacity=10)
    s.append(0.0, 4.0)
    s.append(1.0, 6.0)
    g0 = s.generation
    s.rewrite(lambda v: v - 6.0)
    assert s.values == [-2.0, 0.0]
    assert s.timestamps == [0.0, 1.0]
    assert s.generation != g0
    g1 = s.generation
    s.clear()
    assert len(s) == 0 and s.appended == 0
    assert s.generation != g1
    assert s.latest() == 0.0


def test_fresh_series_never_shares_generation():
    assert Series(3).generation != Series(3).generation
