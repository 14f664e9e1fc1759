from clockwatch.crossings import POSITIVE, NEGATIVE
from clockwatch.peaks import PeakDetector, interpolate_peak


def test_symmetric_parabola_vertex():
    t, v = interpolate_peak(0.0, 10.0, 0.0, 0.0, 1.0, 2.0)
    assert abs(t - 1.0) < 1e-12
    assert abs(v - 10.0) < 1e-12


def test_positive_peak_after_quantization_correction():
    # p3 is one step short of the symmetric point; +2 makes the fit symmetric
    d = PeakDetector()
    pk = d.update(0.0, 10.0, -2.0, 0.0, 1.0, 2.0)
    assert pk is not None and pk.polarity == POSITIVE and pk.interpolated
    assert abs(pk.time - 1.0) < 1e-12
    assert abs(pk.value - 10.0) < 1e-12
    assert d.positive is pk


def test_negative_peak_after_quantization_correction():
    # p1 and p2 are raised by one step: (0, -10, 2) -> (2, -8, 2)
    d = PeakDetector()
    pk = d.update(0.0, -10.0, 2.0, 0.0, 1.0, 2.0)
    assert pk is not None and pk.polarity == NEGATIVE
    assert abs(pk.time - 1.0) < 1e-12
    assert abs(pk.value - (-8.0)) < 1e-12
    assert d.negative is pk


def test_asymmetric_fit_moves_vertex_inside_window():
    t, v = interpolate_peak(4.0, 10.0, 8.0, 0.0, 1.0, 2.0)
    assert 1.0 < t < 2.0
    assert 10.0 < v <= 14.0


def test_monotonic_points_are_not_peaks():
    d = PeakDetector()
    assert d.update(0.0, 2.0, 4.0, 0.0, 1.0, 2.0) is None
    assert d.update(4.0, 2.0, 0.0, 0.0, 1.0, 2.0) is None
    assert d.update(2.0, 2.0, 2.0, 0.0, 1.0, 2.0) is None
    assert d.positive is None and d.negative is None


def test_extremum_on_wrong_side_of_zero_ignored():
    d = PeakDetector()
    # local maximum below zero is not a positive peak
    assert d.update(-6.0, -4.0, -6.0, 0.0, 1.0, 2.0) is None
    # local minimum above zero is not a negative peak
    assert d.update(6.0, 4.0, 6.0, 0.0, 1.0, 2.0) is None


def test_large_correction_falls_back_to_sample():
    # sharp spike: fitted vertex would move more than 4 degrees
    assert interpolate_peak(0.0, 10.0, 9.0, 0.0, 1.0, 1.001) is None
    d = PeakDetector()
    pk = d.update(0.0, 10.0, 7.0, 0.0, 1.0, 1.001)
    assert pk is not None and not pk.interpolated
    assert pk.value == 10.0 and pk.time == 1.0


def test_degenerate_timestamps_fall_back_to_sample():
    assert interpolate_peak(0.0, 10.0, 0.0, 1.0, 1.0, 2.0) is None
    d = PeakDetector()
    pk = d.update(0.0, 10.0, 0.0, 1.0, 1.0, 2.0)
    assert pk.value == 10.0 and not pk.interpolated
