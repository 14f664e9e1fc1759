from clockwatch.messages import HistoricalRecord
from clockwatch.store import ReadingStore


def test_append_and_range_query(tmp_path):
    store = ReadingStore(tmp_path / "db" / "readings.db")
    store.append(HistoricalRecord(total_micros=1_000, drift_micros=3, amplitude=250.0, period=2.0,
                                  channels={"sht85": {"temperature": 22.5, "humidity": None}}),
                 host_micros=100)
    store.append(HistoricalRecord(total_micros=3_000, period=2.01), host_micros=300)
    store.append(HistoricalRecord(total_micros=2_000, amplitude=249.0), host_micros=200)
    store.append(HistoricalRecord(total_micros=9_000, amplitude=1.0), host_micros=900)

    rows = store.query(100, 300)
    assert [r.total_micros for r in rows] == [1_000, 2_000, 3_000]
    first = rows[0]
    assert first.drift_micros == 3 and first.amplitude == 250.0 and first.period == 2.0
    assert first.channels == {"sht85": {"temperature": 22.5, "humidity": None}}
    # nulls survive the round trip
    assert rows[1].period is None and rows[2].amplitude is None
    assert rows[2].channels == {}
    store.close()


def test_empty_range(tmp_path):
    store = ReadingStore(tmp_path / "readings.db")
    store.append(HistoricalRecord(total_micros=1, period=1.0), host_micros=50)
    assert store.query(100, 200) == []
    store.close()


def test_reopen_keeps_rows(tmp_path):
    path = tmp_path / "readings.db"
    s1 = ReadingStore(path)
    s1.append(HistoricalRecord(total_micros=5, period=1.5), host_micros=10)
    s1.close()
    s2 = ReadingStore(path)
    assert [r.period for r in s2.query(0, 10)] == [1.5]
    s2.close()
