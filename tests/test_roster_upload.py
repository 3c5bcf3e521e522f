import io

import pandas as pd
from sqlmodel import select

from models import Assignment, Branch, User, UserRole
from services.user_onboarding import process_roster_excel_upload


def roster_bytes(rows):
    output = io.BytesIO()
    pd.DataFrame(rows).to_excel(output, index=False, engine='openpyxl')
    return output.getvalue()


ROSTER = [
    # Reports are listed before their managers on purpose
    {'Name': 'Bina Rao', 'Email': 'bina@corp.com', 'Role': 'bhr', 'Reports To Email': 'zara@corp.com',
     'E-Code': 'E100', 'Branch Code': 'PN01', 'Branch Name': 'Pune Camp', 'Branch Location': 'Pune',
     'Branch Category': 'Metro'},
    {'Name': 'Zara Khan', 'Email': 'Zara@corp.com', 'Role': 'ZHR', 'Reports To Email': 'vera@corp.com'},
    {'Name': 'Vera Shah', 'Email': 'vera@corp.com', 'Role': 'VHR', 'Reports To Email': 'chief@corp.com'},
    {'Name': 'Chief', 'Email': 'chief@corp.com', 'Role': 'CHR', 'Reports To Email': None},
]


def test_roster_upload_creates_chain_and_assignment(session):
    result = process_roster_excel_upload(roster_bytes(ROSTER), session)

    assert result["success"], result
    assert result["rows_processed"] == 4
    assert result["users_created"] == 4
    assert result["assignments_added"] == 1
    assert result["errors"] == []

    users = {u.email: u for u in session.exec(select(User)).all()}
    assert users["bina@corp.com"].reports_to == users["zara@corp.com"].id
    assert users["zara@corp.com"].role == UserRole.ZHR
    assert users["chief@corp.com"].reports_to is None
    assert users["bina@corp.com"].e_code == "E100"

    branch = session.exec(select(Branch).where(Branch.code == "PN01")).one()
    assert branch.name == "Pune Camp"
    assert len(session.exec(select(Assignment)).all()) == 1


def test_roster_upload_is_idempotent(session):
    process_roster_excel_upload(roster_bytes(ROSTER), session)
    again = process_roster_excel_upload(roster_bytes(ROSTER), session)

    assert again["success"]
    assert again["users_created"] == 0
    assert again["assignments_added"] == 0
    assert len(session.exec(select(User)).all()) == 4


def test_roster_upload_reports_bad_rows(session):
    rows = ROSTER + [
        {'Name': 'Lost', 'Email': 'lost@corp.com', 'Role': 'BHR', 'Reports To Email': 'vera@corp.com'},
        {'Name': 'Nobody', 'Email': 'nobody@corp.com', 'Role': 'Intern', 'Reports To Email': None},
    ]
    result = process_roster_excel_upload(roster_bytes(rows), session)

    assert result["success"]
    assert result["users_created"] == 4
    assert len(result["errors"]) == 2


def test_roster_upload_requires_columns(session):
    result = process_roster_excel_upload(roster_bytes([{'Name': 'X', 'Email': 'x@corp.com'}]), session)

    assert not result["success"]
    assert "Missing required columns" in result["error"]


def test_roster_upload_endpoint(client, seeded, login):
    files = {"file": ("roster.xlsx", roster_bytes(ROSTER[:1] + [
        {'Name': 'Zara Khan', 'Email': 'zara@corp.com', 'Role': 'ZHR', 'Reports To Email': 'bob@hrview.com'},
    ]), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}

    resp = client.post("/api/users/upload_roster", files=files, headers=login("alice@hrview.com"))
    assert resp.status_code == 200
    assert resp.json()["users_created"] == 2

    bad_type = client.post("/api/users/upload_roster", files={"file": ("roster.csv", b"a,b", "text/csv")},
                           headers=login("alice@hrview.com"))
    assert bad_type.status_code == 400
