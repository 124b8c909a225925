from rider.logger import Logger


def test_log_line_written_to_file(tmp_path):
    path = tmp_path / "ride.log"
    logger = Logger(str(path), echo=False)
    logger.log("Ride saved", {"ride_id": "ride_1", "distance_km": 1.5})
    logger.error("Upload failed")
    logger.close()

    text = path.read_text()
    assert "Rider Log - " in text
    assert 'Ride saved | {"ride_id": "ride_1", "distance_km": 1.5}' in text
    assert "] ERROR Upload failed\n" in text
    assert logger.file is None


def test_echo_and_callback(capsys):
    received = []
    logger = Logger(callback=lambda message, data: received.append((message, data)))
    logger.log("STATE", {"points": 3})
    assert "STATE | {\"points\": 3}" in capsys.readouterr().out
    assert received == [("STATE", {"points": 3})]


def test_non_json_values_are_stringified(capsys):
    logger = Logger()
    logger.log("Odd", {"value": {7}})
    assert '"value": "{7}"' in capsys.readouterr().out
