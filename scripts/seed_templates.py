#!/usr/bin/env python3
"""
Seed the shared symptom and medication presets (is_custom = false).
Run with: python scripts/seed_templates.py

Existing presets with the same name are left untouched, so the script can be
re-run after adding entries below.
"""
from healthdiary.db.database import Base, SessionLocal, engine
from healthdiary.models import Symptom, Medication

SYMPTOMS = [
    ("Головная боль", "Боль в области головы"),
    ("Мигрень", "Приступообразная односторонняя головная боль"),
    ("Головокружение", None),
    ("Слабость", "Общая усталость, упадок сил"),
    ("Бессонница", "Трудности с засыпанием или частые пробуждения"),
    ("Тошнота", None),
    ("Боль в суставах", None),
    ("Повышенное давление", None),
    ("Пониженное давление", None),
    ("Учащённое сердцебиение", None),
]

MEDICATIONS = [
    ("Парацетамол", "Жаропонижающее и обезболивающее"),
    ("Ибупрофен", "Нестероидное противовоспалительное средство"),
    ("Цитрамон", None),
    ("Но-шпа", "Спазмолитик"),
    ("Магне B6", None),
    ("Глицин", None),
    ("Валерьяна", "Успокоительное растительного происхождения"),
]


def seed(db, model, entries):
    existing = {
        name for (name,) in db.query(model.name).filter(model.is_custom == False).all()
    }
    added = 0
    for name, description in entries:
        if name in existing:
            print(f"- Already present: {name}")
            continue
        db.add(model(name=name, description=description, is_custom=False, user_id=None))
        added += 1
        print(f"✓ Added {model.__tablename__[:-1]}: {name}")
    return added


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed(db, Symptom, SYMPTOMS) + seed(db, Medication, MEDICATIONS)
        db.commit()
    finally:
        db.close()
    print(f"\nSeeding complete, {added} presets added.")


if __name__ == "__main__":
    main()
