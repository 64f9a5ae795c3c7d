"""
Tests for the study guide workflow: create, update, delete, upvote, queries and version history.
"""
from conftest import guide_payload

from models.models import StudyGuide, StudyGuideVersion, User
from schemas.study_guide import Keyword


def create_guide(client, headers, **overrides):
    response = client.post("/study-guides", json=guide_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()


# --- Create ---

def test_create_attaches_ai_content_and_broadcasts(client, alice, ai_generator, notifier):
    alice_id, headers = alice
    guide = create_guide(client, headers)

    assert guide["creator"]["id"] == alice_id
    assert guide["contributor_ids"] == [alice_id]
    assert guide["summary"] == "A generated summary."
    assert guide["flashcards"][0]["question"] == "What is tested?"
    assert guide["keywords"] == [{"word": "testing", "importance": 7}]
    assert guide["upvotes"] == 0 and guide["upvoted_by"] == []

    assert notifier.names() == ["studyGuide:created"]
    assert notifier.events[0][1]["id"] == guide["id"]
    assert notifier.events[0][1]["creator"] == alice_id


def test_create_survives_empty_ai_results(client, alice, ai_generator, notifier):
    _, headers = alice
    ai_generator.summary = ""
    ai_generator.flashcards = []
    ai_generator.keywords = []

    guide = create_guide(client, headers)

    assert guide["summary"] == ""
    assert guide["flashcards"] == []
    assert guide["keywords"] == []
    assert notifier.names() == ["studyGuide:created"]


def test_create_rejects_short_content(client, alice, db_session):
    _, headers = alice
    response = client.post("/study-guides", json=guide_payload(content="too short"), headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Content must be at least 10 characters long"
    assert db_session.query(StudyGuide).count() == 0


def test_create_requires_subject(client, alice):
    _, headers = alice
    response = client.post("/study-guides", json=guide_payload(subjects=[]), headers=headers)
    assert response.status_code == 400


def test_custom_subject_replaces_subjects(client, alice):
    _, headers = alice
    guide = create_guide(client, headers, subjects=["Biology"], custom_subject="Marine Ecology")

    assert guide["subjects"] == ["Marine Ecology"]
    assert guide["custom_subject"] == "Marine Ecology"


def test_create_requires_authentication(client, db_session):
    response = client.post("/study-guides", json=guide_payload())
    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, no token"

    response = client.post("/study-guides", json=guide_payload(), headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


# --- Update ---

def test_update_with_short_content_changes_nothing(client, alice, db_session, notifier):
    _, headers = alice
    guide = create_guide(client, headers)

    response = client.put(f"/study-guides/{guide['id']}", json={"content": "tiny", "title": "New title"},
                          headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Content must be at least 10 characters long"
    current = client.get(f"/study-guides/{guide['id']}").json()
    assert current["title"] == guide["title"]
    assert current["content"] == guide["content"]
    assert current["versions"] == []
    assert "studyGuide:updated" not in notifier.names()


def test_metadata_only_update_appends_no_version(client, alice):
    _, headers = alice
    guide = create_guide(client, headers)

    response = client.put(f"/study-guides/{guide['id']}", json={"title": "Renamed guide"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["title"] == "Renamed guide"
    assert client.get(f"/study-guides/{guide['id']}").json()["versions"] == []


def test_content_change_appends_previous_content(client, alice):
    alice_id, headers = alice
    guide = create_guide(client, headers)
    new_content = guide["content"] + " Mitochondria are the powerhouse."

    client.put(f"/study-guides/{guide['id']}", json={"content": new_content}, headers=headers)
    # Same content again is not a change
    client.put(f"/study-guides/{guide['id']}", json={"content": new_content}, headers=headers)

    detail = client.get(f"/study-guides/{guide['id']}").json()
    assert detail["content"] == new_content
    assert len(detail["versions"]) == 1
    assert detail["versions"][0]["content"] == guide["content"]
    assert detail["versions"][0]["updated_by"]["id"] == alice_id


def test_significant_change_threshold(client, alice, ai_generator):
    _, headers = alice
    guide = create_guide(client, headers, content="a" * 150)
    ai_generator.calls.clear()

    # Delta of exactly 100 is not significant
    client.put(f"/study-guides/{guide['id']}", json={"content": "b" * 250}, headers=headers)
    assert ai_generator.calls == []

    # Back to 150 (delta 100 again), then 251 from 150 (delta 101)
    client.put(f"/study-guides/{guide['id']}", json={"content": "c" * 150}, headers=headers)
    assert ai_generator.calls == []
    client.put(f"/study-guides/{guide['id']}", json={"content": "d" * 251}, headers=headers)
    assert [name for name, _ in ai_generator.calls] == [
        "summarize", "generate_flashcards", "extract_keywords"
    ]


def test_significant_change_overwrites_ai_content(client, alice, ai_generator):
    _, headers = alice
    guide = create_guide(client, headers, content="a" * 150)
    ai_generator.summary = "A fresh summary."
    ai_generator.keywords = []

    updated = client.put(f"/study-guides/{guide['id']}", json={"content": "z" * 400}, headers=headers).json()

    assert updated["summary"] == "A fresh summary."
    # Empty AI result leaves the prior keywords in place
    assert updated["keywords"] == guide["keywords"]


def test_explicit_flashcards_win_over_ai(client, alice, ai_generator):
    _, headers = alice
    guide = create_guide(client, headers, content="a" * 150)
    ai_generator.calls.clear()
    ai_generator.keywords = [Keyword(word="fresh", importance=3)]
    explicit = [{
        "question": "2 + 2?",
        "answer": "4",
        "type": "multiple_choice",
        "options": ["3", "4"],
        "correct_option_index": 1,
    }]

    updated = client.put(f"/study-guides/{guide['id']}",
                         json={"content": "b" * 400, "flashcards": explicit}, headers=headers).json()

    assert ai_generator.called("generate_flashcards") == []
    assert ai_generator.called("extract_keywords")
    assert updated["flashcards"] == explicit
    assert updated["keywords"] == [{"word": "fresh", "importance": 3}]


def test_empty_flashcards_clear_existing_cards(client, alice, ai_generator):
    _, headers = alice
    guide = create_guide(client, headers, content="a" * 150)
    assert guide["flashcards"]

    updated = client.put(f"/study-guides/{guide['id']}", json={"flashcards": []}, headers=headers).json()
    assert updated["flashcards"] == []

    # A significant edit still asks the AI for cards, but the explicit empty list wins
    ai_generator.calls.clear()
    updated = client.put(f"/study-guides/{guide['id']}",
                         json={"content": "b" * 400, "flashcards": []}, headers=headers).json()
    assert ai_generator.called("generate_flashcards")
    assert updated["flashcards"] == []


def test_omitted_flashcards_are_left_alone(client, alice):
    _, headers = alice
    guide = create_guide(client, headers)

    updated = client.put(f"/study-guides/{guide['id']}", json={"title": "Renamed guide"}, headers=headers).json()
    assert updated["flashcards"] == guide["flashcards"]


def test_description_can_be_cleared(client, alice):
    _, headers = alice
    guide = create_guide(client, headers, description="Something")

    updated = client.put(f"/study-guides/{guide['id']}", json={"description": ""}, headers=headers).json()
    assert updated["description"] == ""

    untouched = client.put(f"/study-guides/{guide['id']}", json={"title": "Another title"}, headers=headers).json()
    assert untouched["description"] == ""


def test_update_by_stranger_is_forbidden(client, alice, bob, notifier):
    _, alice_headers = alice
    _, bob_headers = bob
    guide = create_guide(client, alice_headers)

    response = client.put(f"/study-guides/{guide['id']}", json={"title": "Hijacked"}, headers=bob_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to update this study guide"
    assert "studyGuide:updated" not in notifier.names()


def test_creator_is_never_duplicated_into_contributors(client, alice):
    alice_id, headers = alice
    guide = create_guide(client, headers)

    for i in range(3):
        client.put(f"/study-guides/{guide['id']}", json={"content": guide["content"] + "!" * (i + 1)},
                   headers=headers)

    detail = client.get(f"/study-guides/{guide['id']}").json()
    assert detail["contributor_ids"] == [alice_id]
    assert [c["id"] for c in detail["contributors"]] == [alice_id]


def test_contributor_can_update(client, alice, bob, db_session):
    _, alice_headers = alice
    bob_id, bob_headers = bob
    guide = create_guide(client, alice_headers)

    study_guide = db_session.get(StudyGuide, guide["id"])
    study_guide.add_contributor(db_session.get(User, bob_id))
    db_session.commit()

    response = client.put(f"/study-guides/{guide['id']}", json={"content": guide["content"] + " more"},
                          headers=bob_headers)

    assert response.status_code == 200
    versions = client.get(f"/study-guides/{guide['id']}").json()["versions"]
    assert versions[0]["updated_by"]["id"] == bob_id


def test_update_broadcasts_once(client, alice, notifier):
    alice_id, headers = alice
    guide = create_guide(client, headers)

    client.put(f"/study-guides/{guide['id']}", json={"title": "Renamed guide"}, headers=headers)

    assert notifier.names() == ["studyGuide:created", "studyGuide:updated"]
    payload = notifier.events[1][1]
    assert payload["study_guide_id"] == guide["id"]
    assert payload["updated_by"] == alice_id


def test_update_missing_guide(client, alice):
    _, headers = alice
    response = client.put("/study-guides/999", json={"title": "Nothing"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Study guide not found"


# --- Delete ---

def test_delete_by_creator(client, alice, db_session, notifier):
    _, headers = alice
    guide = create_guide(client, headers)
    client.put(f"/study-guides/{guide['id']}", json={"content": guide["content"] + " edited"}, headers=headers)

    response = client.delete(f"/study-guides/{guide['id']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Study guide removed"
    assert client.get(f"/study-guides/{guide['id']}").status_code == 404
    assert db_session.query(StudyGuideVersion).count() == 0
    assert notifier.names()[-1] == "studyGuide:deleted"


def test_delete_by_non_creator_is_forbidden(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    guide = create_guide(client, alice_headers)

    response = client.delete(f"/study-guides/{guide['id']}", headers=bob_headers)

    assert response.status_code == 403
    assert client.get(f"/study-guides/{guide['id']}").status_code == 200


# --- Upvote ---

def test_upvote_toggles_and_keeps_count_in_sync(client, alice, bob, db_session, notifier):
    _, alice_headers = alice
    bob_id, bob_headers = bob
    guide = create_guide(client, alice_headers)

    first = client.put(f"/study-guides/{guide['id']}/upvote", headers=bob_headers).json()
    assert first == {"upvotes": 1, "upvoted": True}
    assert notifier.events[-1] == ("studyGuide:upvoted", {
        "study_guide_id": guide["id"], "upvotes": 1, "upvoted_by": [bob_id],
    })

    second = client.put(f"/study-guides/{guide['id']}/upvote", headers=bob_headers).json()
    assert second == {"upvotes": 0, "upvoted": False}

    db_session.expire_all()
    study_guide = db_session.get(StudyGuide, guide["id"])
    assert study_guide.upvotes == len(study_guide.upvoters) == 0


def test_creator_can_upvote_own_guide(client, alice):
    alice_id, headers = alice
    guide = create_guide(client, headers)

    assert client.put(f"/study-guides/{guide['id']}/upvote", headers=headers).json()["upvoted"] is True
    assert client.get(f"/study-guides/{guide['id']}").json()["upvoted_by"] == [alice_id]


def test_upvote_missing_guide(client, alice):
    _, headers = alice
    assert client.put("/study-guides/42/upvote", headers=headers).status_code == 404


# --- Queries ---

def test_pagination(client, alice):
    _, headers = alice
    for i in range(25):
        create_guide(client, headers, title=f"Guide number {i}")

    response = client.get("/study-guides", params={"limit": 10, "page": 3}).json()

    assert len(response["study_guides"]) == 5
    assert response["pages"] == 3
    assert response["total"] == 25
    assert response["page"] == 3


def test_default_page_size(client, alice):
    _, headers = alice
    for i in range(12):
        create_guide(client, headers, title=f"Guide number {i}")

    response = client.get("/study-guides").json()
    assert len(response["study_guides"]) == 10
    assert response["pages"] == 2


def test_out_of_range_page_and_unknown_sort_fall_back(client, alice):
    _, headers = alice
    first = create_guide(client, headers, title="First guide")
    second = create_guide(client, headers, title="Second guide")

    response = client.get("/study-guides", params={"page": 0})
    assert response.status_code == 200
    assert response.json()["page"] == 1
    assert len(response.json()["study_guides"]) == 2

    response = client.get("/study-guides", params={"sort": "bogus"})
    assert response.status_code == 200
    assert [g["id"] for g in response.json()["study_guides"]] == [second["id"], first["id"]]


def test_sort_orders(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    first = create_guide(client, alice_headers, title="First guide")
    second = create_guide(client, alice_headers, title="Second guide")
    third = create_guide(client, alice_headers, title="Third guide")
    client.put(f"/study-guides/{second['id']}/upvote", headers=bob_headers)

    def ids(sort=None):
        params = {"sort": sort} if sort else {}
        return [g["id"] for g in client.get("/study-guides", params=params).json()["study_guides"]]

    assert ids() == [third["id"], second["id"], first["id"]]
    assert ids("newest") == [third["id"], second["id"], first["id"]]
    assert ids("oldest") == [first["id"], second["id"], third["id"]]
    assert ids("popular")[0] == second["id"]


def test_subject_filter_is_exact(client, alice):
    _, headers = alice
    biology = create_guide(client, headers, subjects=["Biology"])
    create_guide(client, headers, subjects=["Marine Biology"])
    both = create_guide(client, headers, subjects=["Chemistry", "Biology"])

    response = client.get("/study-guides", params={"subject": "Biology"}).json()

    assert {g["id"] for g in response["study_guides"]} == {biology["id"], both["id"]}
    assert response["total"] == 2


def test_search_ranks_exact_title_first(client, alice):
    _, headers = alice
    create_guide(client, headers, title="Photosynthesis in depth",
                 content="Light reactions and the Calvin cycle explained.")
    exact = create_guide(client, headers, title="Photosynthesis",
                         content="How plants turn light into sugar.")
    create_guide(client, headers, title="Organic chemistry", content="Carbon compounds and bonds.",
                 subjects=["Chemistry"])

    response = client.get("/study-guides", params={"search": "photosynthesis"}).json()

    assert response["total"] == 2
    assert response["study_guides"][0]["id"] == exact["id"]


def test_search_treats_like_wildcards_literally(client, alice):
    _, headers = alice
    percent = create_guide(client, headers, title="Growth at 100% capacity")
    create_guide(client, headers, title="Growth at 1000 capacity")
    underscore = create_guide(client, headers, title="The x_y notation")
    create_guide(client, headers, title="The xzy notation")

    response = client.get("/study-guides", params={"search": "100%"}).json()
    assert [g["id"] for g in response["study_guides"]] == [percent["id"]]

    response = client.get("/study-guides", params={"search": "x_y"}).json()
    assert [g["id"] for g in response["study_guides"]] == [underscore["id"]]


def test_private_guides_hidden_from_others(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    private = create_guide(client, alice_headers, is_public=False)
    public = create_guide(client, alice_headers)

    listed = [g["id"] for g in client.get("/study-guides").json()["study_guides"]]
    assert listed == [public["id"]]

    assert client.get(f"/study-guides/{private['id']}").status_code == 404
    assert client.get(f"/study-guides/{private['id']}", headers=bob_headers).status_code == 404
    assert client.get(f"/study-guides/{private['id']}", headers=alice_headers).status_code == 200

    mine = [g["id"] for g in client.get("/study-guides/my-guides", headers=alice_headers).json()]
    assert set(mine) == {private["id"], public["id"]}


def test_my_guides_sorted_by_last_update(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    older = create_guide(client, alice_headers, title="Older guide")
    newer = create_guide(client, alice_headers, title="Newer guide")
    create_guide(client, bob_headers, title="Not mine")

    client.put(f"/study-guides/{older['id']}", json={"title": "Older guide, edited"}, headers=alice_headers)

    mine = client.get("/study-guides/my-guides", headers=alice_headers).json()
    assert [g["id"] for g in mine] == [older["id"], newer["id"]]


def test_get_expands_creator_and_contributors(client, alice):
    alice_id, headers = alice
    guide = create_guide(client, headers)

    detail = client.get(f"/study-guides/{guide['id']}").json()

    assert detail["creator"] == {"id": alice_id, "username": "alice", "profile_picture": ""}
    assert detail["contributors"][0]["username"] == "alice"


# --- Version history ---

def test_version_list_and_diff(client, alice):
    _, headers = alice
    original = "line one\nline two\nline three\n"
    guide = create_guide(client, headers, content=original)
    client.put(f"/study-guides/{guide['id']}", json={"content": "line one\nline 2\nline three\n"},
               headers=headers)
    client.put(f"/study-guides/{guide['id']}", json={"content": "line one\nline 2\nline three\nline four\n"},
               headers=headers)

    versions = client.get(f"/study-guides/{guide['id']}/versions").json()
    assert versions["total_count"] == 2
    assert [v["index"] for v in versions["versions"]] == [1, 0]
    assert versions["versions"][1]["content_length"] == len(original)

    diff = client.get(f"/study-guides/{guide['id']}/versions/0/diff").json()
    assert "-line two" in diff["unified_diff"]
    assert "+line 2" in diff["unified_diff"]
    assert "+line four" in diff["unified_diff"]
    assert diff["changes_count"] == 3

    assert client.get(f"/study-guides/{guide['id']}/versions/5/diff").status_code == 404
