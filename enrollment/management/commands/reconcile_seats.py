from django.core.management.base import BaseCommand
from django.db import transaction
from courses.models import Course
from enrollment.models import Student


class Command(BaseCommand):
    help = (
        'Recomputes each course\'s enrolled_students from the registrations that hold a seat. '
        'Run after a consistency-risk event was logged.'
    )

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report drift without fixing it')
        parser.add_argument('--course', type=str, help='Only reconcile the course with this code')

    def handle(self, *args, **options):
        courses = Course.objects.all().order_by('code')
        if options['course']:
            courses = courses.filter(code=options['course'].strip().upper())

        drifted = 0
        for course_id in courses.values_list('id', flat=True):
            with transaction.atomic():
                # Lock the course so no reservation lands between the count and the fix
                course = Course.objects.select_for_update().get(pk=course_id)
                held = Student.objects.filter(course=course).exclude(status=Student.Status.REJECTED).count()
                expected = min(held, course.max_students)

                if course.enrolled_students == expected:
                    continue

                drifted += 1
                self.stdout.write(
                    self.style.WARNING(
                        f'{course.code}: counter says {course.enrolled_students}, '
                        f'{held} registrations hold a seat'
                    )
                )
                if not options['dry_run']:
                    Course.objects.filter(pk=course.pk).update(enrolled_students=expected)

        if not drifted:
            self.stdout.write(self.style.SUCCESS('All seat counters match their registrations.'))
        elif options['dry_run']:
            self.stdout.write(self.style.WARNING(f'{drifted} course(s) drifted. Nothing changed (dry run).'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Reconciled {drifted} course(s).'))
