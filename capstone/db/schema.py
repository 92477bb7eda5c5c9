"""
Database schema - table definitions for the SQLite store.

Statements are executed in order by init_database(); DROP_ORDER is the
reverse dependency order used by reset_database().
"""

SCHEMA_STATEMENTS = [
    # ============================================================
    # USERS
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS admin_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        full_name TEXT NOT NULL,
        is_archived INTEGER NOT NULL DEFAULT 0,
        archived_at TIMESTAMP,
        last_login TIMESTAMP,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS clients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        organization_name TEXT NOT NULL,
        contact_name TEXT NOT NULL,
        contact_title TEXT,
        phone TEXT,
        address TEXT,
        website TEXT,
        description TEXT,
        industry TEXT,
        is_archived INTEGER NOT NULL DEFAULT 0,
        archived_at TIMESTAMP,
        last_login TIMESTAMP,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        full_name TEXT NOT NULL,
        student_number TEXT,
        course TEXT,
        year_level INTEGER,
        is_archived INTEGER NOT NULL DEFAULT 0,
        archived_at TIMESTAMP,
        last_login TIMESTAMP,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,

    # ============================================================
    # PROJECTS
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id INTEGER NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
        parent_project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
        phase_number INTEGER NOT NULL DEFAULT 1,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        required_skills TEXT,
        tools_technologies TEXT,
        deliverables TEXT,
        semester_availability TEXT NOT NULL DEFAULT 'both'
            CHECK (semester_availability IN ('semester1', 'semester2', 'both')),
        project_type TEXT,
        duration_weeks INTEGER,
        max_students INTEGER,
        prerequisites TEXT,
        additional_info TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'active', 'inactive', 'rejected', 'completed')),
        rejection_reason TEXT,
        approved_by INTEGER,
        approved_at TIMESTAMP,
        completed_by INTEGER,
        completed_at TIMESTAMP,
        client_name_snapshot TEXT,
        client_org_snapshot TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status)",
    "CREATE INDEX IF NOT EXISTS idx_projects_client ON projects(client_id)",
    "CREATE INDEX IF NOT EXISTS idx_projects_parent ON projects(parent_project_id)",

    # ============================================================
    # INTERESTS & FAVORITES
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS student_interests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        message TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        expressed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        withdrawn_at TIMESTAMP
    )
    """,
    # one active interest per (student, project); withdrawn rows are kept
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_interests_active_unique
        ON student_interests(student_id, project_id) WHERE is_active = 1
    """,
    "CREATE INDEX IF NOT EXISTS idx_interests_project ON student_interests(project_id, is_active)",
    """
    CREATE TABLE IF NOT EXISTS student_favorites (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (student_id, project_id)
    )
    """,

    # ============================================================
    # GALLERY
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS project_gallery (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        year INTEGER NOT NULL,
        category TEXT,
        image_urls TEXT NOT NULL DEFAULT '[]',
        client_name TEXT,
        team_members TEXT,
        outcomes TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        submitted_by INTEGER,
        approved_by INTEGER,
        approved_at TIMESTAMP,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_gallery_status ON project_gallery(status)",

    # ============================================================
    # SETTINGS
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS config_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        setting_key TEXT NOT NULL UNIQUE,
        setting_value TEXT,
        setting_type TEXT NOT NULL DEFAULT 'string'
            CHECK (setting_type IN ('string', 'number', 'boolean', 'json')),
        category TEXT NOT NULL
            CHECK (category IN ('branding', 'auth', 'features', 'rules', 'privacy')),
        description TEXT,
        updated_by INTEGER,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,

    # ============================================================
    # AUDIT / LOGS / ANALYTICS
    # ============================================================
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_type TEXT,
        user_id INTEGER,
        action TEXT NOT NULL,
        entity_type TEXT,
        entity_id INTEGER,
        old_value TEXT,
        new_value TEXT,
        ip_address TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_audit_created ON audit_log(created_at)",
    """
    CREATE TABLE IF NOT EXISTS error_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        error_code TEXT,
        request_method TEXT,
        request_url TEXT,
        user_id INTEGER,
        ip_address TEXT,
        user_agent TEXT,
        stack_trace TEXT,
        additional_data TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_error_logs_created ON error_logs(created_at)",
    """
    CREATE TABLE IF NOT EXISTS analytics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_type TEXT NOT NULL,
        user_type TEXT,
        user_id INTEGER,
        project_id INTEGER,
        search_query TEXT,
        filter_type TEXT,
        filter_value TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

DROP_ORDER = [
    "analytics",
    "error_logs",
    "audit_log",
    "config_settings",
    "project_gallery",
    "student_favorites",
    "student_interests",
    "projects",
    "students",
    "clients",
    "admin_users",
]
