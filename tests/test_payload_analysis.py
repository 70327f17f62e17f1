"""Tests for provider payload detection and field extraction."""

from app.services.payload_analysis import (
    analyze_payload,
    compute_payload_hash,
    duration_between,
    map_call_status,
)


def test_vapi_end_of_call_report():
    payload = {
        "message": {
            "type": "end-of-call-report",
            "endedReason": "customer-ended-call",
            "call": {"id": "call-1", "customer": {"number": "+12127365000"}},
            "artifact": {
                "transcript": "AI: Hi\nUser: I need a cleaning",
                "recordingUrl": "https://rec.example/1.mp3",
                "messages": [
                    {"role": "bot", "message": "Hi"},
                    {"role": "user", "message": "I need a cleaning"},
                ],
            },
            "analysis": {"summary": "Caller wants a cleaning appointment"},
            "startedAt": "2026-05-01T10:00:00Z",
            "endedAt": "2026-05-01T10:02:05Z",
        }
    }

    result = analyze_payload(payload)

    assert result.source_type == "phone"
    assert result.source_platform == "vapi"
    assert result.phone_number == "+12127365000"
    assert result.transcript == "AI: Hi\nUser: I need a cleaning"
    assert result.transcript_formatted == [
        {"role": "assistant", "content": "Hi"},
        {"role": "user", "content": "I need a cleaning"},
    ]
    assert result.recording_url == "https://rec.example/1.mp3"
    assert result.call_status == "completed"
    assert result.duration_seconds == 125
    assert result.summary == "Caller wants a cleaning appointment"
    assert result.extracted_data["summary"] == result.summary
    assert result.extracted_data["phone"] == "+12127365000"


def test_twilio_sms_payload():
    result = analyze_payload({"From": "+12127365000", "To": "+15550001111", "Body": "STOP texting"})
    assert result.source_type == "sms"
    assert result.source_platform == "twilio"
    assert result.phone_number == "+12127365000"
    assert result.transcript == "STOP texting"
    assert result.summary == "STOP texting"


def test_autocalls_payload():
    result = analyze_payload(
        {
            "call_id": "ac-1",
            "phone_number": "2127365000",
            "transcript": "Customer asked about pricing",
            "status": "busy",
            "duration": 42.4,
        }
    )
    assert result.source_platform == "autocalls"
    assert result.call_status == "busy"
    assert result.duration_seconds == 42


def test_chatbot_payload():
    result = analyze_payload(
        {
            "platform": "intercom",
            "messages": [
                {"role": "user", "content": "Do you take insurance?"},
                {"role": "assistant", "content": "Yes, most plans."},
            ],
        }
    )
    assert result.source_type == "chatbot"
    assert result.source_platform == "intercom"
    assert result.transcript == "user: Do you take insurance?\nassistant: Yes, most plans."


def test_web_form_payload_extracts_contact_fields():
    result = analyze_payload(
        {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "message": "Call me"}
    )
    assert result.source_type == "web_form"
    assert result.source_platform == "web_form"
    assert result.extracted_data["name"] == "Ada Lovelace"
    assert result.extracted_data["email"] == "ada@example.com"
    assert result.transcript == "Call me"


def test_unknown_payload():
    result = analyze_payload({"foo": "bar"})
    assert result.source_type == "web_form"
    assert result.source_platform == "unknown"
    assert result.summary is None


def test_summary_falls_back_to_transcript_prefix():
    long_text = "x" * 500
    result = analyze_payload({"From": "+12127365000", "To": "+1", "Body": long_text})
    assert result.summary == "x" * 200


def test_extraction_hints_pull_custom_keys():
    result = analyze_payload(
        {"name": "Bo", "details": {"Insurance": "Delta"}},
        extraction_hints={"insurance": "Insurance carrier"},
    )
    assert result.extracted_data["insurance"] == "Delta"


def test_map_call_status():
    assert map_call_status("customer-busy") == "busy"
    assert map_call_status("no_answer") == "no_answer"
    assert map_call_status("voicemail") == "no_answer"
    assert map_call_status("pipeline-error-openai") == "failed"
    assert map_call_status("completed") == "completed"
    assert map_call_status("") is None
    assert map_call_status("something-else") is None


def test_duration_between():
    assert duration_between("2026-05-01T10:00:00Z", "2026-05-01T10:00:30Z") == 30
    assert duration_between("2026-05-01T10:00:30Z", "2026-05-01T10:00:00Z") is None
    assert duration_between(None, "2026-05-01T10:00:00Z") is None


def test_compute_payload_hash_is_stable():
    assert compute_payload_hash(b'{"a": 1}') == compute_payload_hash('{"a": 1}')
    assert compute_payload_hash(b'{"a": 1}') != compute_payload_hash(b'{"a": 2}')
    assert len(compute_payload_hash(b"")) == 64
