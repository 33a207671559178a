"""Seed demo data for the merchant CRM."""
from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from merchants.models import Activity, Merchant
from merchants.services import create_merchant, log_activity
from onboarding.models import Onboarding
from onboarding.tracker import OnboardingTracker
from pipeline.models import Pipeline
from pipeline.state_machine import PipelineStateMachine

User = get_user_model()

Stage = Pipeline.Stage

USERS = [
    ("admin@crm.local", "System", "Administrator", User.Role.ADMIN),
    ("sami@crm.local", "Sami", "Al-Ahmad", User.Role.REP),
    ("layla@crm.local", "Layla", "Khalil", User.Role.REP),
]

# (name, category, contact, phone, email, location, description, rep index)
MERCHANTS = [
    ("Ka3kawi Restaurant", "FOOD", "Ahmad Ka3kawi", "+962791111111", "ahmad@ka3kawi.example",
     "Rainbow Street, Amman", "Traditional Jordanian cuisine restaurant", 1),
    ("Base Padel Club", "SPORTS", "Sarah Al-Rashid", "+962791111112", "sarah@basepadel.example",
     "Abdoun, Amman", "Premium padel tennis club", 1),
    ("Bun Fellows Coffee", "DESSERTS_COFFEE", "Omar Hijazi", "+962791111113", "omar@bunfellows.example",
     "Jabal Al-Weibdeh, Amman", "Artisan coffee and pastries", 2),
    ("Glow Beauty Salon", "BEAUTY", "Nour Al-Zahra", "+962791111114", "nour@glowbeauty.example",
     "Sweifieh, Amman", "Full-service beauty and wellness salon", 2),
    ("Tech Repair Shop", "ELECTRONICS", "Khaled Mansour", "+962791111115", "khaled@techrepair.example",
     "Downtown, Amman", "Mobile and laptop repair services", 1),
]

# Stages walked through by each merchant; the last one is where it ends up.
JOURNEYS = {
    "Ka3kawi Restaurant": [Stage.CONTACTED, Stage.CONTRACT_SENT, Stage.WON],
    "Base Padel Club": [Stage.CONTACTED, Stage.MEETING_SCHEDULED, Stage.CONTRACT_SENT, Stage.WON],
    "Bun Fellows Coffee": [Stage.CONTACTED, Stage.CONTRACT_SENT],
    "Glow Beauty Salon": [Stage.CONTACTED, Stage.FOLLOW_UP_NEEDED],
}
LIVE_MERCHANTS = {"Ka3kawi Restaurant"}


class Command(BaseCommand):
    help = "Seed the CRM demo dataset (1 admin, 2 reps, 5 merchants with pipelines, onboarding and payouts)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="demo12345", help="Password set on newly created demo users.")

    @transaction.atomic
    def handle(self, *args, **options):
        users = []
        for email, first, last, role in USERS:
            user, created = User.objects.get_or_create(
                email=email,
                defaults={"first_name": first, "last_name": last, "role": role, "is_active": True},
            )
            if created:
                user.set_password(options["password"])
                user.save(update_fields=["password"])
            users.append(user)
        admin = users[0]

        machine = PipelineStateMachine()
        tracker = OnboardingTracker(ledger=machine.ledger)
        now = timezone.now()
        seeded = 0

        for name, category, contact, phone, email, location, description, rep_index in MERCHANTS:
            if Merchant.objects.filter(name=name, contact_phone=phone).exists():
                self.stdout.write(f"Skipping existing merchant {name}")
                continue
            rep = users[rep_index]
            merchant = create_merchant(
                name=name,
                category=category,
                assigned_rep=rep,
                actor=admin,
                contact_person_name=contact,
                contact_phone=phone,
                contact_email=email,
                location=location,
                description=description,
            )
            for stage in JOURNEYS.get(name, []):
                machine.transition(merchant.pipeline, stage, actor=rep, notes="Demo data")

            onboarding = Onboarding.objects.filter(merchant=merchant).first()
            if onboarding is not None:
                is_live = name in LIVE_MERCHANTS
                onboarding = tracker.update_checklist(
                    onboarding,
                    {
                        "survey_filled": True,
                        "offers_added": True,
                        "branches_covered": True,
                        "assets_complete": is_live,
                        "qa_approved": is_live,
                    },
                    actor=rep,
                )
                if is_live:
                    tracker.mark_live(onboarding, actor=admin)

            log_activity(
                merchant,
                rep,
                type=Activity.Type.CALL,
                summary="Initial contact call",
                description="Discussed partnership opportunity and benefits",
                outcome=Activity.Outcome.POSITIVE,
                duration_minutes=15,
                completed_at=now - timedelta(days=5),
            )
            log_activity(
                merchant,
                rep,
                type=Activity.Type.MEETING,
                summary="In-person meeting at merchant location",
                description="Presented detailed proposal and answered questions",
                outcome=Activity.Outcome.FOLLOW_UP_NEEDED,
                duration_minutes=45,
                completed_at=now - timedelta(days=2),
            )
            seeded += 1

        self.stdout.write(self.style.SUCCESS(f"Seeded {seeded} merchants."))
