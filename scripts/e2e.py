#!/usr/bin/env python3
import os
import sys
import textwrap
import httpx


def main() -> int:
    base = sys.argv[1] if len(sys.argv) > 1 else os.getenv("BASE_URL", "http://127.0.0.1:8000")
    doc_type = os.getenv("E2E_DOC_TYPE", "عقد إيجار سقالات")

    print(f"Base URL: {base}")
    with httpx.Client(base_url=base, timeout=120.0) as client:
        # Health
        r = client.get("/health")
        r.raise_for_status()
        data = r.json()
        assert data.get("status") == "ok", f"Health not ok: {data}"
        print(f"✓ Health ok (provider={data.get('provider')})")

        # Start
        r = client.post("/conversations", json={"doc_type": doc_type})
        r.raise_for_status()
        start = r.json()
        sid = start["session_id"]
        assert start["stage"] == "initial"
        print(f"✓ Conversation started (session_id={sid})")
        print(f"  Greeting: {textwrap.shorten(start['messages'][0]['content'], width=140)}")

        # Describe the request
        r = client.post(f"/conversations/{sid}/messages", json={"text": "أحتاج عقد إيجار سقالات لمشروع برج سكني في الرياض"})
        r.raise_for_status()
        turn = r.json()
        assert turn["stage"] == "clarifying", f"Expected clarifying, got {turn['stage']}"
        state = client.get(f"/conversations/{sid}").json()
        questions = state["questions"]
        print(f"✓ {len(questions)} clarification questions")

        # Answer them
        answers = [
            "شركة النور للمقاولات",
            "برج سكني، حي الملقا، الرياض",
            "ثلاثة أشهر",
            "15000 ريال شهرياً",
            "نعم يشمل التركيب والفك",
        ]
        for i, _q in enumerate(questions):
            text = answers[i] if i < len(answers) else "نعم، استخدم نفس التفاصيل"
            r = client.post(f"/conversations/{sid}/messages", json={"text": text})
            r.raise_for_status()
            turn = r.json()
        assert turn["stage"] == "completed", f"Generation did not complete: {turn['messages'][-1]['content']}"
        record_id = turn["record_id"]
        print(f"✓ Document generated (record_id={record_id})")
        preview = textwrap.shorten(turn["generated_content"].replace("\n", " / "), width=140)
        print(f"  Preview: {preview}")

        # Feedback
        r = client.post("/feedback", json={"record_id": record_id, "rating": 5, "feedback": "ممتاز"})
        r.raise_for_status()
        assert r.json().get("status") == "received"
        print("✓ Feedback accepted")

        stats = client.get("/memory/stats").json()
        print(f"  Memory: total={stats['total_conversations']} avg_rating={stats['average_rating']:.1f} most_used={stats['most_used_doc_type']}")

    print("E2E SUCCESS")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except httpx.HTTPError as e:
        print(f"HTTP error: {e}")
        if hasattr(e, "response") and e.response is not None:
            try:
                print("Response:", e.response.text)
            except Exception:
                pass
        raise SystemExit(1)
    except AssertionError as e:
        print("Assertion failed:", e)
        raise SystemExit(1)
    except Exception as e:
        print("Unexpected error:", repr(e))
        raise SystemExit(1)
