from django.core.management.base import BaseCommand
from courses.models import Course
import random

CATALOGUE = [
    ('WMA', 'Web and Mobile App Development', '12 months'),
    ('AIC', 'Artificial Intelligence and Chatbot', '12 months'),
    ('GD', 'Graphic Designing', '6 months'),
    ('CCN', 'Certified Cloud Native', '12 months'),
    ('PY', 'Python Programming', '6 months'),
    ('DM', 'Digital Marketing', '3 months'),
]

CAMPUSES = [
    ('Bahadurabad', 'Karachi'),
    ('Gulshan', 'Karachi'),
    ('Model Town', 'Lahore'),
    ('Blue Area', 'Islamabad'),
]


class Command(BaseCommand):
    help = 'Seeds the database with demo courses'

    def add_arguments(self, parser):
        parser.add_argument('--seats', type=int, default=50, help='Seats per course')

    def handle(self, *args, **options):
        seats = options['seats']
        created = 0

        for prefix, name, duration in CATALOGUE:
            for index, (campus, city) in enumerate(CAMPUSES, start=1):
                _, was_created = Course.objects.get_or_create(
                    code=f"{prefix}{index:02d}",
                    defaults={
                        'name': name,
                        'description': f"{name} at {campus}, {city}.",
                        'duration': duration,
                        'fees': random.choice([0, 1000, 2000]),
                        'campus': campus,
                        'city': city,
                        'max_students': seats,
                    },
                )
                if was_created:
                    created += 1

        self.stdout.write(self.style.SUCCESS(f'Successfully seeded {created} courses'))
