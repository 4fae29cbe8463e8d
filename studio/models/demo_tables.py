# studio/models/demo_tables.py
# Tables materialized inside every preview schema.
# Declared without a schema: studio.db.base.schema_connection maps them
# onto the session's schema via schema_translate_map.

from sqlalchemy import (
    MetaData, Table, Column, Text, Integer, Boolean, Numeric, TIMESTAMP, ForeignKey,
)


demo_metadata: MetaData = MetaData()


# --- Core ---
users = Table(
    'users',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('email', Text, nullable=False, unique=True),
    Column('name', Text, nullable=False),
    Column('role', Text, nullable=False),  # ADMIN | USER
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
)

# --- LMS ---
lms_categories = Table(
    'lms_categories',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('slug', Text, nullable=False, unique=True),
    Column('display_order', Integer, nullable=False, default=0),
)

lms_courses = Table(
    'lms_courses',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('title', Text, nullable=False),
    Column('slug', Text, nullable=False, unique=True),
    Column('category_id', Integer, ForeignKey('lms_categories.id'), nullable=True),
    Column('instructor_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('price', Integer, nullable=False),  # cents
    Column('level', Text, nullable=False),
    Column('status', Text, nullable=False),
)

lms_enrollments = Table(
    'lms_enrollments',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('course_id', Integer, ForeignKey('lms_courses.id'), nullable=False),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('progress', Integer, nullable=False, default=0),
)

# --- Booking ---
booking_services = Table(
    'booking_services',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('slug', Text, nullable=False, unique=True),
    Column('provider_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('duration_minutes', Integer, nullable=False),
    Column('price', Integer, nullable=False),
)

bookings = Table(
    'bookings',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('service_id', Integer, ForeignKey('booking_services.id'), nullable=False),
    Column('customer_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('starts_at', TIMESTAMP(timezone=True), nullable=False),
    Column('status', Text, nullable=False),
)

# --- Invoicing ---
invoicing_clients = Table(
    'invoicing_clients',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('email', Text, nullable=False),
    Column('company', Text, nullable=True),
)

invoices = Table(
    'invoices',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('number', Text, nullable=False, unique=True),
    Column('client_id', Integer, ForeignKey('invoicing_clients.id'), nullable=False),
    Column('total', Numeric(12, 2), nullable=False),
    Column('status', Text, nullable=False),
    Column('issued_at', TIMESTAMP(timezone=True), nullable=False),
)

# --- Tasks ---
task_projects = Table(
    'task_projects',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('owner_id', Integer, ForeignKey('users.id'), nullable=False),
)

tasks = Table(
    'tasks',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('project_id', Integer, ForeignKey('task_projects.id'), nullable=False),
    Column('title', Text, nullable=False),
    Column('assignee_id', Integer, ForeignKey('users.id'), nullable=True),
    Column('status', Text, nullable=False),
    Column('priority', Text, nullable=False),
)

# --- Events ---
event_venues = Table(
    'event_venues',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('city', Text, nullable=False),
    Column('capacity', Integer, nullable=False),
)

events = Table(
    'events',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('title', Text, nullable=False),
    Column('venue_id', Integer, ForeignKey('event_venues.id'), nullable=True),
    Column('organizer_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('starts_at', TIMESTAMP(timezone=True), nullable=False),
    Column('is_online', Boolean, nullable=False, default=False),
)

event_registrations = Table(
    'event_registrations',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('event_id', Integer, ForeignKey('events.id'), nullable=False),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('status', Text, nullable=False),
)

# --- E-commerce ---
product_categories = Table(
    'product_categories',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('slug', Text, nullable=False, unique=True),
)

products = Table(
    'products',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
    Column('slug', Text, nullable=False, unique=True),
    Column('category_id', Integer, ForeignKey('product_categories.id'), nullable=True),
    Column('price', Integer, nullable=False),
    Column('stock', Integer, nullable=False),
)

ecommerce_orders = Table(
    'ecommerce_orders',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('customer_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('total', Integer, nullable=False),
    Column('status', Text, nullable=False),
)

# --- Helpdesk ---
helpdesk_categories = Table(
    'helpdesk_categories',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', Text, nullable=False),
)

tickets = Table(
    'tickets',
    demo_metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('subject', Text, nullable=False),
    Column('category_id', Integer, ForeignKey('helpdesk_categories.id'), nullable=True),
    Column('requester_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('assignee_id', Integer, ForeignKey('users.id'), nullable=True),
    Column('priority', Text, nullable=False),
    Column('status', Text, nullable=False),
)
