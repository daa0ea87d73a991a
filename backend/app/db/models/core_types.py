import enum

class Role(str, enum.Enum):
    admin = "admin"
    user = "user"

class PlanType(str, enum.Enum):
    weekly = "weekly"
    monthly = "monthly"
    annual = "annual"

class PlanStatus(str, enum.Enum):
    active = "active"
    concluded = "concluded"

# Type d'enfant attendu pour chaque type de plan agrégé
CHILD_PLAN_TYPE = {
    PlanType.monthly: PlanType.weekly,
    PlanType.annual: PlanType.monthly,
}
