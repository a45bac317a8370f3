"""
Seed the global help guides

Creates one guide per navigation topic (practice_id NULL, so every practice
sees them). Guides whose slug already exists are skipped, so the script can
be re-run after adding topics.

Run with: python migrations/seed_help_guides.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import models, models_help  # noqa: F401,E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models_help import HelpGuide  # noqa: E402
from app.shared.validators import slugify  # noqa: E402

NAVIGATION_GUIDES = [
    # Client Management
    {
        "keywords": ["add client", "new client", "create client"],
        "category": "clients",
        "content": (
            "1. Click **Clients** in the top navigation\n"
            "2. Click the **Add Client** button (top right)\n"
            "3. Fill in required fields: First Name, Last Name\n"
            "4. Optional: Email, Phone, DOB, Address, Status, Risk Level, Assigned Therapist\n"
            "5. Click **Create Client**"
        ),
    },
    {
        "keywords": ["view client", "see client", "find client", "client profile"],
        "category": "clients",
        "content": (
            "1. Click **Clients** in the top navigation\n"
            "2. Use the search box or scroll to find the client\n"
            "3. Click on the client's name to open their profile"
        ),
    },
    {
        "keywords": ["edit client", "update client", "change client"],
        "category": "clients",
        "content": (
            "1. Click **Clients** and open the client's profile\n"
            "2. Click the **Edit** button\n"
            "3. Make your changes\n"
            "4. Click **Save**"
        ),
    },
    # Scheduling
    {
        "keywords": ["schedule appointment", "book session", "add appointment", "create session"],
        "category": "scheduling",
        "content": (
            "1. Click **Scheduling** in the top navigation\n"
            "2. Choose Day/Week/Month view (tabs at top)\n"
            "3. Click on a time slot in the calendar\n"
            "4. Fill in: Client, Session Type, Service, Start Time, Duration, Room\n"
            "5. Click **Create Session**"
        ),
    },
    {
        "keywords": ["calendar view", "change view", "switch view"],
        "category": "scheduling",
        "content": (
            "1. Go to the **Scheduling** page\n"
            "2. At the top of the calendar, click **Day**, **Week** or **Month**\n"
            "3. The calendar switches to that view"
        ),
    },
    {
        "keywords": ["cancel appointment", "delete session", "cancel session"],
        "category": "scheduling",
        "content": (
            "1. Go to **Scheduling** and find the appointment on the calendar\n"
            "2. Click on the appointment\n"
            "3. Open the action menu\n"
            "4. Choose **Cancel** or **Delete**\n"
            "5. Confirm the action"
        ),
    },
    # Session Notes
    {
        "keywords": [
            "session note",
            "add session note",
            "write note",
            "document session",
            "create note",
            "write session note",
            "create session note",
        ],
        "category": "notes",
        "content": (
            "1. Click **Clients** and open the client's profile\n"
            "2. Click the **Sessions** tab\n"
            "3. Click **+ Add Session Note**\n"
            "4. Fill in: Session Date, Time, Duration, Session Type, clinical details\n"
            "5. Click **Save Session Note**"
        ),
    },
    {
        "keywords": ["ai note", "generate note", "ai help note"],
        "category": "notes",
        "content": (
            "1. When adding a session note, look for the **Generate with AI** button\n"
            "2. Click it to get a drafted note\n"
            "3. Review and edit the generated content\n"
            "4. Click **Save Session Note**"
        ),
    },
    # Library
    {
        "keywords": ["library", "add library", "library content", "clinical content"],
        "category": "library",
        "content": (
            "1. Click **Administration** and select **Library**\n"
            "2. Choose a category: Session Focus, Symptoms, Goals, Interventions or Progress\n"
            "3. Click **+ Add Entry**\n"
            "4. Enter your content\n"
            "5. Click **Save**"
        ),
    },
    {
        "keywords": ["connect library", "link library", "library connections"],
        "category": "library",
        "content": (
            "1. Go to **Administration** > **Library**\n"
            "2. Click on any entry\n"
            "3. Click the **Connect** button\n"
            "4. Select related entries from other categories\n"
            "5. Click **Save Connections**"
        ),
    },
    # Tasks
    {
        "keywords": ["create task", "add task", "new task"],
        "category": "tasks",
        "content": (
            "1. Click **Tasks** in the top navigation\n"
            "2. Click **+ Add Task**\n"
            "3. Fill in: Title, Description, Due Date, Priority, Assigned To\n"
            "4. Optional: link the task to a client\n"
            "5. Click **Create Task**"
        ),
    },
    {
        "keywords": ["filter tasks", "search tasks", "find tasks"],
        "category": "tasks",
        "content": (
            "1. Go to the **Tasks** page\n"
            "2. Use the filters at the top:\n"
            "   - Status: All/Pending/In Progress/Completed\n"
            "   - Priority: All/Low/Medium/High/Urgent\n"
            "   - Assigned To: select a user\n"
            "3. Results update automatically"
        ),
    },
    {
        "keywords": ["complete task", "mark task done", "finish task"],
        "category": "tasks",
        "content": (
            "1. Go to **Tasks** and find your task\n"
            "2. Click on the task to open it\n"
            "3. Change the status to **Completed**\n"
            "4. Click **Save**"
        ),
    },
    # Billing
    {
        "keywords": ["add service", "billing service", "create service"],
        "category": "billing",
        "content": (
            "1. Click **Billing** in the top navigation\n"
            "2. Click the **Services** tab\n"
            "3. Click **+ Add Service**\n"
            "4. Enter: Name, Code, Rate, Duration\n"
            "5. Click **Create**"
        ),
    },
    {
        "keywords": ["add room", "create room", "billing room"],
        "category": "billing",
        "content": (
            "1. Go to the **Billing** page\n"
            "2. Click the **Rooms** tab\n"
            "3. Click **+ Add Room**\n"
            "4. Enter the room details\n"
            "5. Click **Create**"
        ),
    },
    {
        "keywords": ["payment status", "track payments", "billing sessions"],
        "category": "billing",
        "content": (
            "1. Go to the **Billing** page\n"
            "2. Click the **Sessions** tab\n"
            "3. Each session shows its payment status\n"
            "4. Use the filters to narrow down by date or status"
        ),
    },
    # Assessments
    {
        "keywords": ["create assessment", "assessment template", "add assessment"],
        "category": "assessments",
        "content": (
            "1. Click **Administration** > **Assessments**\n"
            "2. Click **+ Create Template**\n"
            "3. Enter the template name and description, then add sections and questions\n"
            "4. Click **Save Template**"
        ),
    },
    {
        "keywords": ["assign assessment", "give assessment to client"],
        "category": "assessments",
        "content": (
            "1. Click **Clients** and open the client's profile\n"
            "2. Go to the **Assessments** tab\n"
            "3. Click **Assign Assessment**\n"
            "4. Select the template and set a due date\n"
            "5. Click **Assign**"
        ),
    },
    # Client Portal
    {
        "keywords": ["client portal", "give client access", "portal access"],
        "category": "clients",
        "content": (
            "1. Go to **Clients** and open the client's profile\n"
            "2. Click the **Portal Access** tab\n"
            "3. Toggle **Enable Portal Access**\n"
            "4. Click **Send Invitation** to email the client an activation link"
        ),
    },
    # Users and profile
    {
        "keywords": ["add user", "create user", "new staff"],
        "category": "settings",
        "content": (
            "1. Click **Administration** > **User Profiles**\n"
            "2. Click **+ Add User**\n"
            "3. Fill in: Full Name, Username, Email, Role\n"
            "4. Set an initial password\n"
            "5. Click **Create User**"
        ),
    },
    {
        "keywords": ["my profile", "change password", "update my info"],
        "category": "settings",
        "content": (
            "1. Click your name in the top right corner\n"
            "2. Select **My Profile**\n"
            "3. Edit your information\n"
            "4. Click **Save Changes**"
        ),
    },
    # Navigation
    {
        "keywords": ["dashboard", "home", "main page"],
        "category": "dashboard",
        "content": "Click **Dashboard** in the top navigation bar to return to the main overview page.",
    },
    {
        "keywords": ["administration", "admin menu", "settings"],
        "category": "dashboard",
        "content": (
            "Click **Administration** in the top navigation to access:\n"
            "- Library\n"
            "- Assessments\n"
            "- User Profiles\n"
            "- Notifications\n"
            "- HIPAA Audit\n"
            "- Settings\n\n"
            "(Only visible to Admin and Supervisor roles)"
        ),
    },
]


def guide_title(keywords: list[str]) -> str:
    return " ".join(word.capitalize() for word in keywords[0].split())


def seed():
    """Create missing global guides"""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    created = 0
    skipped = 0
    try:
        for order, guide in enumerate(NAVIGATION_GUIDES):
            title = guide_title(guide["keywords"])
            slug = slugify(title)
            if db.query(HelpGuide.id).filter(HelpGuide.slug == slug).first():
                print(f"ℹ️  Skipping existing guide: {title}")
                skipped += 1
                continue

            db.add(
                HelpGuide(
                    practice_id=None,
                    title=title,
                    slug=slug,
                    content=guide["content"],
                    category=guide["category"],
                    search_keywords=guide["keywords"],
                    sort_order=order,
                )
            )
            print(f"✅ Created guide: {title}")
            created += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print(f"\n✅ Help guides seeded. Created: {created}, Skipped: {skipped}")
    return created, skipped


if __name__ == "__main__":
    seed()
