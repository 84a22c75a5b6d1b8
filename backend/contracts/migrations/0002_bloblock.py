from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('contracts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BlobLock',
            fields=[
                ('digest', models.CharField(
                    help_text='SHA-256 hash of the guarded content',
                    max_length=64,
                    primary_key=True,
                    serialize=False
                )),
                ('locked_at', models.DateTimeField(
                    blank=True,
                    help_text='When the lock was last taken',
                    null=True
                )),
            ],
            options={
                'verbose_name': 'Blob Lock',
                'verbose_name_plural': 'Blob Locks',
            },
        ),
    ]
