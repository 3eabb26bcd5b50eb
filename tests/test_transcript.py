import datetime

import newsdesk.transcript as tr


def test_transcript_stats_counts_words_and_speakers():
    text = (
        "Interviewer: Where were you on Monday?\n"
        "Subject: At the council meeting.\n"
        "\n"
        "Interviewer: All day?\n"
    )
    stats = tr.transcript_stats(text)
    assert stats.word_count == 14
    assert stats.speakers == ["Interviewer", "Subject"]
    assert stats.speakers_identified


def test_numbered_speakers_are_detected():
    assert tr.speaker_labels("Speaker 1: hi\nSpeaker 2: hello\nSpeaker 1: bye") == [
        "Speaker 1",
        "Speaker 2",
    ]


def test_transcript_without_labels():
    stats = tr.transcript_stats("just some words without any labels")
    assert stats.word_count == 6
    assert stats.speakers == []
    assert not stats.speakers_identified


def test_empty_transcript():
    stats = tr.transcript_stats("")
    assert stats.word_count == 0
    assert not stats.speakers_identified


def test_download_filename():
    assert tr.download_filename(datetime.date(2024, 3, 9)) == "transcription-2024-03-09.txt"


def test_label_on_its_own_line():
    text = "Speaker 1:\nWe start at nine.\nSpeaker 2:\nAgreed."
    assert tr.speaker_labels(text) == ["Speaker 1", "Speaker 2"]
    assert tr.transcript_stats(text).speakers_identified
