from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uid', models.CharField(db_index=True, help_text='UUID v5 of subject-chapter-section-type-number', max_length=36)),
                ('question_number', models.IntegerField(blank=True, help_text='The number from the markdown file', null=True)),
                ('subject', models.CharField(blank=True, max_length=255, null=True)),
                ('chapter', models.CharField(blank=True, max_length=255, null=True)),
                ('section', models.CharField(blank=True, max_length=255, null=True)),
                ('type', models.CharField(choices=[('single', 'Single Correct'), ('multiple', 'Multiple Correct'), ('integer', 'Integer / Numerical'), ('matrix', 'Matrix Match'), ('comprehension', 'Linked Comprehension')], default='single', max_length=20)),
                ('document', models.JSONField()),
                ('original_image_urls', models.JSONField(blank=True, default=list, help_text='Image URLs as they were in the markdown, before copying to S3')),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ('subject', 'chapter', 'section', 'question_number', 'id'),
                'indexes': [
                    models.Index(fields=['subject', 'chapter', 'section'], name='question_filter_idx'),
                    models.Index(fields=['type'], name='question_type_idx'),
                ],
            },
        ),
    ]
