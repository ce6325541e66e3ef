import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('academics', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='timetableentry',
            name='time',
            field=models.CharField(
                help_text='e.g., 09:00 - 10:30',
                max_length=13,
                validators=[django.core.validators.RegexValidator(
                    '^([0-1]?[0-9]|2[0-3]):([0-5][0-9])\\s*-\\s*([0-1]?[0-9]|2[0-3]):([0-5][0-9])$',
                    'Time must be in format "HH:MM - HH:MM"',
                )],
            ),
        ),
    ]
