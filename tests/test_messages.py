from clockwatch.messages import (
    ChannelSample, EncoderSample, HistoricalRecord, StatusMessage, parse_historical, parse_message,
)


def test_receiver_reading_is_encoder_sample():
    m = parse_message({"timestamp": 12, "TotalMicros": 4294967307, "Count": -17})
    assert m == EncoderSample(device_micros=4294967307, raw_count=-17)


def test_drift_field_is_optional():
    m = parse_message({"total_micros": 1000, "count": 3, "drift_micros": -42})
    assert isinstance(m, EncoderSample)
    assert m.drift_micros == -42
    assert parse_message({"total_micros": 1000, "count": 3}).drift_micros is None


def test_missing_or_bad_numbers_default_to_zero():
    m = parse_message({"TotalMicros": 5000, "Count": None})
    assert m.raw_count == 0
    m = parse_message({"TotalMicros": "nan", "Count": "x"})
    assert m == EncoderSample(device_micros=0, raw_count=0)


def test_status_message_by_device_tag():
    m = parse_message({"Device": "SERIAL", "Status": "ERROR", "Error": "port gone"})
    assert m == StatusMessage(device="SERIAL", status="ERROR", error="port gone")


def test_channel_sample_by_tag():
    m = parse_message({"channel": "bmp390", "total_micros": 77,
                       "values": {"temperature": 21.5, "pressure": "1013.2"}})
    assert isinstance(m, ChannelSample)
    assert m.channel_type == "bmp390" and m.device_micros == 77
    assert m.values == {"temperature": 21.5, "pressure": 1013.2}


def test_unknown_shapes_rejected():
    assert parse_message({"foo": 1}) is None
    assert parse_message([1, 2, 3]) is None
    assert parse_message(None) is None


def test_historical_nulls_stay_null():
    r = parse_historical({"total_micros": 10, "drift_micros": None, "amplitude": None,
                          "period": 1.5, "channels": {"sht85": {"temperature": None, "humidity": 40}}})
    assert r == HistoricalRecord(total_micros=10, drift_micros=None, amplitude=None, period=1.5,
                                 channels={"sht85": {"temperature": None, "humidity": 40.0}})


def test_camel_case_field_names():
    m = parse_message({"deviceMicros": 1000, "rawCount": 5, "driftMicros": 3})
    assert m == EncoderSample(device_micros=1000, raw_count=5, drift_micros=3)
    m = parse_message({"channelType": "bmp180", "deviceMicros": 1000,
                       "values": {"temperature": 21.0, "pressure": 1002.5}})
    assert m == ChannelSample("bmp180", 1000, {"temperature": 21.0, "pressure": 1002.5})
    r = parse_historical({"totalMicros": 99, "driftMicros": 4, "period": 2.0})
    assert r.total_micros == 99 and r.drift_micros == 4


def test_flat_sensor_frame_is_channel_sample():
    m = parse_message({"type": "bmp180", "temperature": 22.4, "pressure": 1011.0,
                       "timestamp": 1700000000000000})
    assert m == ChannelSample("bmp180", 1700000000000000, {"temperature": 22.4, "pressure": 1011.0})
    m = parse_message({"type": "sht85", "temperature": 21.9, "humidity": 45, "ok": True,
                       "note": "x", "timestamp": 5})
    assert m.values == {"temperature": 21.9, "humidity": 45.0}


def test_count_without_timestamp_defaults_time_to_zero():
    assert parse_message({"TotalMicros": None, "Count": 4}) == EncoderSample(device_micros=0, raw_count=4)
    assert parse_message({"Count": 4}) == EncoderSample(device_micros=0, raw_count=4)
    # the raw u32 timestamp stands in when no extended time is sent
    assert parse_message({"timestamp": 12, "count": 1}).device_micros == 12
