from domain.results import InterviewResult
from domain.transcript import CANDIDATE, INTERVIEWER, Transcript, TranscriptItem


def test_blank_items_are_dropped():
    result = InterviewResult(
        interview_id="abc",
        transcript=[
            TranscriptItem(INTERVIEWER, "Hi", 1.0),
            TranscriptItem(CANDIDATE, "  ", 2.0),
        ],
    )
    assert [i.text for i in result.transcript] == ["Hi"]


def test_grouped_is_derived_when_missing():
    result = InterviewResult(
        interview_id="abc",
        transcript=[
            TranscriptItem(CANDIDATE, "I used", 1.0),
            TranscriptItem(CANDIDATE, "React", 2.0),
        ],
    )
    assert len(result.grouped) == 1
    assert result.grouped[0].text == "I used React"
    assert result.grouped[0].timestamp == 2.0


def test_from_transcript_keeps_grouping():
    transcript = Transcript()
    transcript.append(INTERVIEWER, "Tell me about a hard bug.")
    transcript.append(CANDIDATE, "A race condition.")
    result = InterviewResult.from_transcript("x", transcript, analysis={"summary": "ok"})

    assert len(result.transcript) == 2
    assert [g.speaker for g in result.grouped] == [INTERVIEWER, CANDIDATE]
    assert result.analysis == {"summary": "ok"}


def test_from_dict_tolerates_legacy_shapes():
    data = {
        "transcript": [
            {"speaker": "assistant", "text": "Question?", "ts": 5},
            {"speaker": "user"},
            "garbage",
        ],
        "grouped": [{"speaker": "Interviewer", "text": "Question?", "ts": 5}],
        "saved_at": 10,
    }
    result = InterviewResult.from_dict("legacy", data)

    assert len(result.transcript) == 1
    assert result.grouped[0].timestamp == 5.0
    assert result.saved_at == 10.0


def test_qa_pairs():
    result = InterviewResult(
        interview_id="abc",
        transcript=[
            TranscriptItem(INTERVIEWER, "What did you build?", 1.0),
            TranscriptItem(CANDIDATE, "A compiler.", 2.0),
        ],
    )
    pairs = result.qa_pairs()
    assert len(pairs) == 1
    assert pairs[0].question == "What did you build?"
    assert pairs[0].answer == "A compiler."


def test_round_trip_dict():
    result = InterviewResult(
        interview_id="abc",
        transcript=[TranscriptItem(INTERVIEWER, "Hello", 1.0)],
        analysis={"summary": "s"},
        saved_at=3.0,
    )
    restored = InterviewResult.from_dict("abc", result.to_dict())
    assert restored.to_dict() == result.to_dict()
