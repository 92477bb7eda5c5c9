#!/usr/bin/env python3
"""
Seed Data Script

Rebuilds the database and fills it with sample accounts, projects in every
lifecycle status, interests and favorites.
Usage: python scripts/seed_data.py [--keep]
"""
import argparse
import sys
sys.path.insert(0, '.')

from sqlalchemy import text

from capstone.db.sqlite import get_db_session, init_database, reset_database
from capstone.services import project_service, user_service
from capstone.services.settings_service import get_settings_manager

PASSWORD = "Passw0rd!"

CLIENTS = [
    ("projects@greenfield.example.com", "Greenfield Energy", "Dana Whitfield", "Energy"),
    ("capstone@medsoft.example.com", "MedSoft Health", "Priya Raman", "Healthcare"),
]

STUDENTS = [
    ("alex.chen@student.example.edu", "Alex Chen", "20481234"),
    ("sam.okafor@student.example.edu", "Sam Okafor", "20489876"),
    ("lee.martin@student.example.edu", "Lee Martin", None),
]

PROJECTS = [
    # (client index, title, semester, final status)
    (0, "Solar Farm Output Forecasting", "semester1", "active"),
    (0, "Grid Outage Reporting Mobile App", "both", "approved"),
    (1, "Patient Appointment Scheduler", "semester2", "pending"),
    (1, "Clinical Notes Summarisation Research", "both", "rejected"),
    (0, "Energy Usage Dashboard for Households", "semester2", "completed"),
]


def project_payload(title: str, semester: str) -> dict:
    return {
        "title": title,
        "description": (f"{title}: a team of final-year students will scope, design and deliver a working "
                        "solution together with the industry partner over one semester."),
        "required_skills": "Python, data analysis, teamwork",
        "tools_technologies": "Python, PostgreSQL, React",
        "deliverables": "Working prototype, final report and presentation",
        "semester_availability": semester,
        "project_type": "development",
        "duration_weeks": 12,
        "max_students": 4,
    }


def seed():
    settings_manager = get_settings_manager()
    settings_manager.seed_defaults()

    admin_id = user_service.create_admin("admin@capstone.example.edu", PASSWORD, "Site Administrator")
    admin = {"id": admin_id, "email": "admin@capstone.example.edu", "type": "admin"}
    print("    admin    admin@capstone.example.edu")

    with get_db_session() as db:
        client_users = []
        for email, org, contact, industry in CLIENTS:
            client_id = user_service.create_client(db, email, PASSWORD, org, contact, industry=industry)
            client_users.append({"id": client_id, "email": email, "type": "client"})
            print(f"    client   {email}")

        student_ids = []
        for email, name, number in STUDENTS:
            student_ids.append(user_service.create_student(db, email, PASSWORD, name, number))
            print(f"    student  {email}")

        for client_index, title, semester, final_status in PROJECTS:
            client = client_users[client_index]
            project_id = project_service.create_project(db, client["id"], project_payload(title, semester), client)
            project = project_service.get_project(db, project_id)

            if final_status == "rejected":
                project_service.review_project(db, project, "rejected", admin,
                                               "Please narrow the scope to a single semester.")
            elif final_status != "pending":
                project_service.review_project(db, project, "approved", admin)
                if final_status in ("active", "completed"):
                    project_service.toggle_project(db, project_service.get_project(db, project_id), admin)
                if final_status == "completed":
                    project_service.complete_project(db, project_service.get_project(db, project_id), admin)
            print(f"    project  [{final_status:<9}] {title}")

        open_projects = db.execute(
            text("SELECT id FROM projects WHERE status IN ('approved', 'active') ORDER BY id")
        ).scalars().all()
        for student_id in student_ids[:2]:
            for project_id in open_projects:
                db.execute(
                    text("INSERT INTO student_interests (student_id, project_id, message) VALUES (:s, :p, :m)"),
                    {"s": student_id, "p": project_id, "m": "Keen to work on this."}
                )
        if open_projects:
            db.execute(
                text("INSERT INTO student_favorites (student_id, project_id) VALUES (:s, :p)"),
                {"s": student_ids[2], "p": open_projects[0]}
            )


def main():
    parser = argparse.ArgumentParser(description="Seed Capstone Connect with sample data")
    parser.add_argument("--keep", action="store_true", help="Do not drop existing tables first")
    args = parser.parse_args()

    print("=" * 50)
    print("CAPSTONE CONNECT - SEED DATA")
    print("=" * 50)
    if args.keep:
        init_database()
    else:
        reset_database()
        print("\n[1] Database reset")

    print("\n[2] Creating sample data...")
    seed()
    print(f"\nAll sample accounts use the password: {PASSWORD}")
    print("=" * 50)


if __name__ == "__main__":
    main()
