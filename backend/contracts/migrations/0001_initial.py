# Generated migration for shared data contract

from django.db import migrations, models
import django.utils.timezone
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.UUIDField(
                    default=uuid.uuid4,
                    editable=False,
                    primary_key=True,
                    serialize=False
                )),
                ('file', models.FileField(
                    help_text='Blob store location of the physical content',
                    max_length=255,
                    upload_to=''
                )),
                ('original_filename', models.CharField(
                    help_text='Original filename as uploaded by user',
                    max_length=255
                )),
                ('file_type', models.CharField(
                    help_text='Declared MIME type of the file',
                    max_length=100
                )),
                ('size', models.BigIntegerField(
                    help_text='File size in bytes'
                )),
                ('digest', models.CharField(
                    help_text='SHA-256 hash of file content',
                    max_length=64
                )),
                ('uploaded_at', models.DateTimeField(
                    default=django.utils.timezone.now,
                    help_text='When this file was uploaded'
                )),
            ],
            options={
                'verbose_name': 'File Record',
                'verbose_name_plural': 'File Records',
                'ordering': ['-uploaded_at'],
            },
        ),
        migrations.AddIndex(
            model_name='filerecord',
            index=models.Index(fields=['digest'], name='filerecord_digest_idx'),
        ),
        migrations.AddIndex(
            model_name='filerecord',
            index=models.Index(fields=['original_filename'], name='filerecord_filename_idx'),
        ),
        migrations.AddIndex(
            model_name='filerecord',
            index=models.Index(fields=['file_type'], name='filerecord_type_idx'),
        ),
        migrations.AddIndex(
            model_name='filerecord',
            index=models.Index(fields=['uploaded_at'], name='filerecord_uploaded_idx'),
        ),
        migrations.AddIndex(
            model_name='filerecord',
            index=models.Index(fields=['size'], name='filerecord_size_idx'),
        ),
    ]
