"""
Prescription Review Database Schema
Supports doctor accounts, patient requests, prescriptions and auth sessions.
"""

SCHEMA = """
-- =============================================================================
-- 1. USERS - Identity-level accounts (doctors and patients)
-- =============================================================================
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    first_name TEXT,
    last_name TEXT,
    phone_number TEXT,

    -- Gate for manual approval
    is_active INTEGER DEFAULT 0,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS user_roles (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, role),
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);


-- =============================================================================
-- 2. DOCTORS - Professional profile, one-to-one with users
-- =============================================================================
CREATE TABLE IF NOT EXISTS doctors (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE,
    title TEXT,
    specialty TEXT,
    license_number TEXT NOT NULL UNIQUE,
    phone_number TEXT,

    -- Address (JSON object: street, city, postal_code, country)
    address TEXT,

    is_verified INTEGER DEFAULT 0,
    is_approved INTEGER DEFAULT 0,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_doctors_user ON doctors(user_id);

CREATE TABLE IF NOT EXISTS doctor_approval_requests (
    id TEXT PRIMARY KEY,
    doctor_id TEXT NOT NULL,
    status TEXT DEFAULT 'pending',
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (doctor_id) REFERENCES doctors(id) ON DELETE CASCADE
);


-- =============================================================================
-- 3. PATIENTS - Patient side profile with medical intake
-- =============================================================================
CREATE TABLE IF NOT EXISTS patients (
    id TEXT PRIMARY KEY,
    user_id TEXT UNIQUE,
    birth_date TEXT,

    -- Medical intake (read-only for doctors)
    symptoms TEXT,
    medications TEXT,
    allergies TEXT,
    chronic_diseases TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_patients_user ON patients(user_id);


-- =============================================================================
-- 4. PRODUCTS and PRESCRIPTION_REQUESTS
-- =============================================================================
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- A request references its requester by patient_id, or by user_id for
-- legacy rows created before the patient profile existed
CREATE TABLE IF NOT EXISTS prescription_requests (
    id TEXT PRIMARY KEY,
    external_id TEXT,
    patient_id TEXT,
    user_id TEXT,

    -- Status: new, info_requested, approved, denied
    status TEXT NOT NULL DEFAULT 'new'
        CHECK (status IN ('new', 'info_requested', 'approved', 'denied')),

    medical_condition TEXT,
    preferences TEXT,
    medication_history TEXT,
    additional_notes TEXT,

    -- Decision (filled when a doctor acts)
    doctor_id TEXT,
    doctor_notes TEXT,

    total_amount REAL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (doctor_id) REFERENCES doctors(id)
);

CREATE INDEX IF NOT EXISTS idx_requests_status ON prescription_requests(status);
CREATE INDEX IF NOT EXISTS idx_requests_patient ON prescription_requests(patient_id);

CREATE TABLE IF NOT EXISTS request_products (
    request_id TEXT NOT NULL,
    product_id TEXT NOT NULL,
    quantity_grams REAL NOT NULL,
    PRIMARY KEY (request_id, product_id),
    FOREIGN KEY (request_id) REFERENCES prescription_requests(id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(id)
);


-- =============================================================================
-- 5. PRESCRIPTIONS - Created once per approved request
-- =============================================================================
CREATE TABLE IF NOT EXISTS prescriptions (
    id TEXT PRIMARY KEY,
    request_id TEXT UNIQUE,
    patient_id TEXT,
    doctor_id TEXT NOT NULL,
    status TEXT NOT NULL,

    -- JSON array of product lines
    prescription_plan TEXT,
    prescription_date TEXT,
    total_amount REAL,
    notes TEXT,

    has_agreed_agb INTEGER NOT NULL,
    has_agreed_privacy_policy INTEGER NOT NULL,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (request_id) REFERENCES prescription_requests(id),
    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (doctor_id) REFERENCES doctors(id)
);

CREATE INDEX IF NOT EXISTS idx_prescriptions_patient ON prescriptions(patient_id);


-- =============================================================================
-- 6. AUTH - Login identities and sessions
-- =============================================================================
CREATE TABLE IF NOT EXISTS auth_identities (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,

    -- JSON object (first_name, last_name)
    metadata TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    access_token TEXT PRIMARY KEY,
    identity_id TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (identity_id) REFERENCES auth_identities(id) ON DELETE CASCADE
);
"""
