"""WebVTT cue track tests."""

from transcoder.services.vtt import calculate_sprite_position, format_vtt_time, generate_vtt


class TestFormatVttTime:
    def test_zero(self) -> None:
        assert format_vtt_time(0) == "00:00:00.000"

    def test_components(self) -> None:
        assert format_vtt_time(3725.5) == "01:02:05.500"

    def test_milliseconds_are_floored(self) -> None:
        assert format_vtt_time(1.9999) == "00:00:01.999"


class TestSpritePosition:
    def test_row_major(self) -> None:
        assert calculate_sprite_position(0, 2, 160, 90) == (0, 0)
        assert calculate_sprite_position(1, 2, 160, 90) == (160, 0)
        assert calculate_sprite_position(2, 2, 160, 90) == (0, 90)
        assert calculate_sprite_position(3, 2, 160, 90) == (160, 90)


class TestGenerateVtt:
    def test_cues_capped_by_grid(self) -> None:
        content = generate_vtt(30.0, 5.0, 2, 2, 160, 90, "vid-sprite.jpg")

        assert content.split("\n") == [
            "WEBVTT",
            "",
            "00:00:00.000 --> 00:00:05.000",
            "vid-sprite.jpg#xywh=0,0,160,90",
            "",
            "00:00:05.000 --> 00:00:10.000",
            "vid-sprite.jpg#xywh=160,0,160,90",
            "",
            "00:00:10.000 --> 00:00:15.000",
            "vid-sprite.jpg#xywh=0,90,160,90",
            "",
            "00:00:15.000 --> 00:00:20.000",
            "vid-sprite.jpg#xywh=160,90,160,90",
            "",
        ]

    def test_last_cue_ends_at_duration(self) -> None:
        content = generate_vtt(12.0, 5.0, 10, 10, 160, 90, "s.jpg")

        cues = [line for line in content.split("\n") if " --> " in line]
        assert len(cues) == 3
        assert cues[-1] == "00:00:10.000 --> 00:00:12.000"

    def test_zero_duration_is_header_only(self) -> None:
        assert generate_vtt(0, 5.0, 10, 10, 160, 90, "s.jpg") == "WEBVTT\n"
