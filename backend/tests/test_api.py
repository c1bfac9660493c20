from pathlib import Path

import pytest

from studydeck.db.chromadb_ import get_collection
from studydeck.services import card_generator, concept_extractor

PDF_BYTES = b"%PDF-1.4\n% fake but hashed\n"


@pytest.fixture
def book(client):
    res = client.post("/books/", json={"title": "Biology", "author": "Campbell"})
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def material(client, book, no_background):
    res = client.post(
        f"/books/{book['id']}/materials",
        files={"file": ("bio.pdf", PDF_BYTES, "application/pdf")},
    )
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def processed(client, material, fake_pdf, fake_embeddings):
    res = client.post(f"/materials/{material['id']}/process")
    assert res.status_code == 200
    return res.json()


@pytest.fixture
def fake_ai(monkeypatch):
    async def fake_chat(system, user, **kwargs):
        if "mcqs" in system:
            return {
                "mcqs": [
                    {
                        "question": "Where does the Calvin cycle fix carbon?",
                        "answer": "Stroma",
                        "distractors": ["Thylakoid", "Cytosol", "Nucleus"],
                        "difficulty": 3,
                    }
                ]
            }
        return {
            "flashcards": [
                {"question": "What absorbs light?", "answer": "Chlorophyll", "difficulty": 2}
            ]
        }

    monkeypatch.setattr(card_generator, "chat_json", fake_chat)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_book_crud(client, book):
    assert client.get(f"/books/{book['id']}").json()["title"] == "Biology"

    res = client.patch(f"/books/{book['id']}", json={"title": "Biology II"})
    assert res.json()["title"] == "Biology II"
    assert res.json()["author"] == "Campbell"

    assert client.get("/books/").json()["total"] == 1
    assert client.delete(f"/books/{book['id']}").status_code == 204
    assert client.get(f"/books/{book['id']}").status_code == 404


def test_upload_validation(client, book, no_background):
    res = client.post(
        f"/books/{book['id']}/materials",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert res.status_code == 400

    res = client.post(
        "/books/missing/materials",
        files={"file": ("bio.pdf", PDF_BYTES, "application/pdf")},
    )
    assert res.status_code == 404
    assert no_background == []


def test_upload_starts_processing_and_rejects_duplicates(client, book, material, no_background):
    assert no_background == [material["id"]]
    assert material["status"] == "pending"
    assert material["filename"] == "bio.pdf"

    res = client.post(
        f"/books/{book['id']}/materials",
        files={"file": ("copy.pdf", PDF_BYTES, "application/pdf")},
    )
    assert res.status_code == 409

    listing = client.get(f"/books/{book['id']}/materials").json()
    assert [m["id"] for m in listing["items"]] == [material["id"]]


def test_process_and_list_chunks(client, material, processed):
    assert processed["success"] is True
    assert processed["chunks_created"] > 1

    mat = client.get(f"/materials/{material['id']}").json()
    assert mat["status"] == "ready"
    assert mat["chunk_count"] == processed["chunks_created"]

    chunks = client.get(f"/materials/{material['id']}/chunks", params={"limit": 500}).json()
    assert chunks["total"] == processed["chunks_created"]
    first = chunks["items"][0]
    assert first["page_from"] == 1
    assert first["topic"] == "Chapter 1"
    assert 2 <= first["difficulty"] <= 4
    assert first["has_embedding"] is True


def test_process_without_text_is_user_error(client, material, monkeypatch):
    from studydeck.services import ingestion
    from studydeck.services.pdf_extractor import PdfExtraction

    monkeypatch.setattr(
        ingestion,
        "extract_pdf",
        lambda path: PdfExtraction(author="", page_count=1, needs_ocr=True),
    )
    res = client.post(f"/materials/{material['id']}/process")
    assert res.status_code == 422
    assert client.get(f"/materials/{material['id']}").json()["status"] == "needs_ocr"


def test_generation_requires_content(client, book):
    res = client.post(f"/books/{book['id']}/flashcards", json={"count": 3})
    assert res.status_code == 400
    assert "upload and process a PDF" in res.json()["detail"]


def test_generation_without_api_key(client, book, processed, monkeypatch):
    from studydeck.config import settings

    monkeypatch.setattr(settings, "ai_api_key", "")
    res = client.post(f"/books/{book['id']}/mcqs", json={"count": 3})
    assert res.status_code == 503


def test_flashcard_review_flow(client, book, processed, fake_ai):
    res = client.post(f"/books/{book['id']}/flashcards", json={"count": 1})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    card = body["cards"][0]
    assert card["type"] == "flashcard"

    decks = client.get(f"/books/{book['id']}/decks").json()
    assert [d["title"] for d in decks["items"]] == ["Generated Flashcards"]
    cards = client.get(f"/decks/{body['deck_id']}/cards").json()
    assert cards["total"] == 1

    assert [c["id"] for c in client.get("/review/due").json()["items"]] == [card["id"]]

    res = client.post(f"/cards/{card['id']}/review", json={"grade": 4})
    assert res.status_code == 201
    review = res.json()
    assert review["interval_days"] == 3
    assert review["ease_factor"] == 2.5

    assert client.get("/review/due").json()["items"] == []
    state = client.get(f"/cards/{card['id']}/state").json()
    assert state["interval_days"] == 3

    stats = client.get("/review/stats").json()
    assert stats["total_cards"] == 1
    assert stats["due_now"] == 0
    assert stats["total_reviews"] == 1
    assert stats["per_deck"] == [
        {
            "deck_id": body["deck_id"],
            "title": "Generated Flashcards",
            "book_id": book["id"],
            "total": 1,
            "due": 0,
        }
    ]


@pytest.mark.parametrize(
    "payload",
    [{}, {"grade": None}, {"grade": 9}, {"grade": -1}, {"grade": True}, {"grade": "4"}],
)
def test_review_rejects_bad_grades(client, book, processed, fake_ai, payload):
    card = client.post(f"/books/{book['id']}/flashcards", json={}).json()["cards"][0]
    res = client.post(f"/cards/{card['id']}/review", json=payload)
    assert res.status_code == 422
    assert client.get(f"/cards/{card['id']}/reviews").json()["total"] == 0


def test_mcq_answer_flow(client, book, processed, fake_ai):
    body = client.post(f"/books/{book['id']}/mcqs", json={"count": 1, "topic": "Photosynthesis"}).json()
    card = body["cards"][0]
    assert card["distractors"] == ["Thylakoid", "Cytosol", "Nucleus"]

    res = client.post(f"/cards/{card['id']}/answer", json={"selected": "Stroma"})
    assert res.status_code == 201
    assert res.json()["correct"] is True
    assert res.json()["review"]["interval_days"] == 7

    res = client.post(f"/cards/{card['id']}/answer", json={"selected": "Cytosol"})
    assert res.json()["correct"] is False
    assert res.json()["correct_answer"] == "Stroma"

    history = client.get(f"/cards/{card['id']}/reviews").json()
    assert [r["grade"] for r in history["items"]] == [4, 1]

    mcqs = client.get(f"/decks/{body['deck_id']}/cards", params={"type": "mcq"}).json()
    assert mcqs["total"] == 1


def test_card_delete(client, book, processed, fake_ai):
    card = client.post(f"/books/{book['id']}/flashcards", json={}).json()["cards"][0]
    assert client.delete(f"/cards/{card['id']}").status_code == 204
    assert client.get(f"/cards/{card['id']}").status_code == 404
    assert client.post(f"/cards/{card['id']}/review", json={"grade": 3}).status_code == 404


def test_concept_map(client, book, processed, monkeypatch):
    async def fake_chat(system, user, **kwargs):
        return [
            {
                "title": "Photosynthesis",
                "description": "Light to sugar",
                "subConcepts": [
                    {"title": "Light reactions", "description": "Thylakoid"},
                    {"title": "Calvin cycle", "description": "Stroma"},
                ],
            }
        ]

    monkeypatch.setattr(concept_extractor, "chat_json", fake_chat)

    res = client.post(f"/books/{book['id']}/concepts")
    assert res.json() == {"success": True, "concept_count": 3}

    tree = client.get(f"/books/{book['id']}/concepts").json()
    assert tree["total"] == 1
    main = tree["items"][0]
    assert main["title"] == "Photosynthesis"
    assert [s["title"] for s in main["sub_concepts"]] == ["Light reactions", "Calvin cycle"]


def test_material_delete(client, material):
    assert client.delete(f"/materials/{material['id']}").status_code == 204
    assert client.get(f"/materials/{material['id']}").status_code == 404


def test_book_delete_removes_files_and_vectors(client, book, material, processed):
    stored = Path(material["storage_path"])
    assert stored.exists()
    assert get_collection().count() == processed["chunks_created"]

    assert client.delete(f"/books/{book['id']}").status_code == 204

    assert not stored.exists()
    assert not stored.parent.exists()
    assert get_collection().count() == 0
    assert client.get(f"/materials/{material['id']}").status_code == 404
    assert client.delete(f"/books/{book['id']}").status_code == 404
