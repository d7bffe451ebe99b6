from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=20, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('duration', models.CharField(help_text='e.g., 6 months', max_length=50)),
                ('fees', models.PositiveIntegerField(default=0)),
                ('instructor', models.CharField(blank=True, max_length=100)),
                ('campus', models.CharField(max_length=100)),
                ('city', models.CharField(max_length=100)),
                ('schedule', models.CharField(blank=True, help_text='e.g., Mon/Wed 10:00-12:00', max_length=100)),
                ('max_students', models.PositiveIntegerField()),
                ('enrolled_students', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('full', 'Full')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['status'], name='course_status_idx'),
                    models.Index(fields=['campus', 'city'], name='course_campus_city_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('max_students__gte', 1)), name='course_max_students_positive'),
                    models.CheckConstraint(condition=models.Q(('enrolled_students__lte', models.F('max_students'))), name='course_enrolled_not_exceed_max'),
                ],
            },
        ),
    ]
