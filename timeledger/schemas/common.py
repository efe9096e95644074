from enum import Enum


class Role(str, Enum):
    admin = "admin"
    manager = "manager"
    employee = "employee"


class EntrySource(str, Enum):
    web = "web"
    manual = "manual"
    api = "api"
    mobile = "mobile"
