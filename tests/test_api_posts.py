"""
API tests for /api/posts: CRUD, visibility rules, listing, likes, uploads
and the AI summary endpoint.
"""
import io
import os


class TestCreatePost:

    def test_requires_token(self, client):
        resp = client.post('/api/posts', json={'title': 'Hello', 'content': 'Body long enough'})
        assert resp.status_code == 401

    def test_rejects_bad_token(self, client):
        resp = client.post('/api/posts', json={}, headers={'Authorization': 'Bearer nope'})
        assert resp.status_code == 401
        assert resp.get_json()['message'] == 'Invalid or expired token'

    def test_validation_errors_are_field_level(self, client, alice):
        resp = client.post('/api/posts', json={'title': 'Hi', 'content': 'short',
                                               'status': 'live'}, headers=alice[1])

        assert resp.status_code == 400
        body = resp.get_json()
        assert body['message'] == 'Validation failed'
        assert {e['field'] for e in body['errors']} == {'title', 'content', 'status'}

    def test_create_with_comma_separated_tags(self, client, alice):
        resp = client.post('/api/posts', data={
            'title': 'Form post',
            'content': 'Submitted as multipart form data',
            'tags': 'Go, go ,Rust',
            'status': 'published',
            'featured': 'true',
        }, headers=alice[1])

        assert resp.status_code == 201
        post = resp.get_json()['post']
        assert sorted(t['name'] for t in post['tags']) == ['go', 'rust']
        assert post['featured'] is True
        assert post['author']['name'] == 'Alice'

        tags = client.get('/api/tags').get_json()['tags']
        assert {t['name']: t['post_count'] for t in tags} == {'go': 1, 'rust': 1}

    def test_cover_image_upload(self, client, alice, app):
        resp = client.post('/api/posts', data={
            'title': 'With cover',
            'content': 'A post that has a cover image',
            'coverImage': (io.BytesIO(b'\x89PNG fake'), 'cover.png'),
        }, headers=alice[1], content_type='multipart/form-data')

        assert resp.status_code == 201
        path = resp.get_json()['post']['cover_image']
        assert path.startswith('/uploads/posts/') and path.endswith('cover.png')
        assert client.get(path).status_code == 200

    def test_cover_image_wrong_type(self, client, alice):
        resp = client.post('/api/posts', data={
            'title': 'With cover',
            'content': 'A post that has a cover image',
            'coverImage': (io.BytesIO(b'MZ'), 'evil.exe'),
        }, headers=alice[1], content_type='multipart/form-data')

        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'coverImage'

    def test_non_string_title_is_a_field_error(self, client, alice):
        resp = client.post('/api/posts', json={'title': 12345,
                                               'content': 'This is the body of the post.'},
                           headers=alice[1])

        assert resp.status_code == 400
        assert resp.get_json()['errors'] == [{'field': 'title',
                                              'message': 'title must be a string'}]

    def test_script_only_content_is_rejected(self, client, alice):
        resp = client.post('/api/posts', json={'title': 'Sneaky post',
                                               'content': '<script>steal(document.cookie)</script>'},
                           headers=alice[1])

        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'content'
        assert client.get('/api/posts').get_json()['total'] == 0

    def test_cover_image_path_from_earlier_upload(self, client, alice):
        uploaded = client.post('/api/upload/post-cover', data={
            'coverImage': (io.BytesIO(b'\x89PNG fake'), 'cover.png'),
        }, headers=alice[1], content_type='multipart/form-data').get_json()['url']

        resp = client.post('/api/posts', json={'title': 'With cover',
                                               'content': 'A post that has a cover image',
                                               'coverImage': uploaded}, headers=alice[1])

        assert resp.status_code == 201
        assert resp.get_json()['post']['cover_image'] == uploaded


class TestReadPost:

    def test_published_read_counts_a_view(self, client, create_post):
        post = create_post()

        first = client.get(f"/api/posts/{post['id']}").get_json()['post']
        second = client.get(f"/api/posts/{post['slug']}").get_json()['post']

        assert first['view_count'] == 1
        assert second['view_count'] == 2

    def test_draft_hidden_from_others(self, client, create_post, bob):
        post = create_post(status='draft')

        assert client.get(f"/api/posts/{post['id']}").status_code == 404
        assert client.get(f"/api/posts/{post['id']}", headers=bob[1]).status_code == 404

    def test_draft_visible_to_author_and_admin_without_view(self, client, create_post,
                                                            alice, admin):
        post = create_post(status='draft')

        as_author = client.get(f"/api/posts/{post['id']}", headers=alice[1])
        as_admin = client.get(f"/api/posts/{post['id']}", headers=admin[1])

        assert as_author.status_code == 200
        assert as_admin.status_code == 200
        assert as_admin.get_json()['post']['view_count'] == 0

    def test_missing_post(self, client):
        resp = client.get('/api/posts/does-not-exist')
        assert resp.status_code == 404
        assert resp.get_json() == {'message': 'Post not found'}


class TestUpdateAndDelete:

    def test_update_moves_tag_counts(self, client, create_post, alice):
        post = create_post(tags=['go', 'rust'])

        resp = client.put(f"/api/posts/{post['id']}", json={'tags': ['rust', 'python']},
                          headers=alice[1])

        assert resp.status_code == 200
        counts = {t['name']: t['post_count'] for t in client.get('/api/tags').get_json()['tags']}
        assert counts == {'go': 0, 'rust': 1, 'python': 1}

    def test_update_by_other_user_is_forbidden(self, client, create_post, bob):
        post = create_post()

        resp = client.put(f"/api/posts/{post['id']}", json={'title': 'Hijacked'},
                          headers=bob[1])

        assert resp.status_code == 403
        assert resp.get_json()['message'] == 'You can only edit your own posts'

    def test_update_missing_post(self, client, alice):
        resp = client.put('/api/posts/999', json={'title': 'Nothing here'}, headers=alice[1])
        assert resp.status_code == 404

    def test_invalid_update_by_other_user_is_forbidden(self, client, create_post, bob):
        post = create_post()
        resp = client.put(f"/api/posts/{post['id']}", json={'title': 'x'}, headers=bob[1])
        assert resp.status_code == 403

    def test_invalid_update_of_missing_post(self, client, alice):
        resp = client.put('/api/posts/999', json={'title': 'x'}, headers=alice[1])
        assert resp.status_code == 404

    def test_update_keeps_cover_when_none_sent(self, client, create_post, alice):
        post = create_post(coverImage='/uploads/posts/abc-cover.png')

        resp = client.put(f"/api/posts/{post['id']}", json={'title': 'Renamed post'},
                          headers=alice[1])

        assert resp.get_json()['post']['cover_image'] == '/uploads/posts/abc-cover.png'

    def test_delete_by_other_user_changes_nothing(self, client, create_post, bob):
        post = create_post(tags=['go'])

        resp = client.delete(f"/api/posts/{post['id']}", headers=bob[1])

        assert resp.status_code == 403
        assert client.get(f"/api/posts/{post['id']}").status_code == 200
        assert client.get('/api/tags/go').get_json()['tag']['post_count'] == 1

    def test_delete_releases_tags(self, client, create_post, alice):
        post = create_post(tags=['go'])

        resp = client.delete(f"/api/posts/{post['id']}", headers=alice[1])

        assert resp.status_code == 200
        assert client.get(f"/api/posts/{post['id']}").status_code == 404
        assert client.get('/api/tags/go').get_json()['tag']['post_count'] == 0


class TestLike:

    def test_like_repeats(self, client, create_post, bob):
        post = create_post()

        counts = [client.post(f"/api/posts/{post['id']}/like", headers=bob[1])
                  .get_json()['like_count'] for _ in range(2)]

        assert counts == [1, 2]

    def test_like_draft_not_found(self, client, create_post, bob):
        post = create_post(status='draft')
        assert client.post(f"/api/posts/{post['id']}/like", headers=bob[1]).status_code == 404

    def test_like_requires_auth(self, client, create_post):
        post = create_post()
        assert client.post(f"/api/posts/{post['id']}/like").status_code == 401


class TestListing:

    def test_only_published_without_content(self, client, create_post):
        create_post(title='Public one')
        create_post(title='Secret draft', status='draft')

        body = client.get('/api/posts').get_json()

        assert [p['title'] for p in body['posts']] == ['Public one']
        assert 'content' not in body['posts'][0]
        assert body['total'] == 1

    def test_pagination(self, client, create_post):
        for i in range(3):
            create_post(title=f'Post number {i}')

        body = client.get('/api/posts?page=2&limit=2').get_json()

        assert len(body['posts']) == 1
        assert body['total_pages'] == 2
        assert body['has_prev_page'] is True
        assert body['has_next_page'] is False

    def test_bad_paging_args(self, client):
        assert client.get('/api/posts?limit=51').status_code == 400
        assert client.get('/api/posts?page=0').status_code == 400
        assert client.get('/api/posts?sort=random').status_code == 400

    def test_tag_filter(self, client, create_post):
        create_post(title='Go thing', tags=['go'])
        create_post(title='Rust thing', tags=['rust'])

        assert [p['title'] for p in client.get('/api/posts?tag=go').get_json()['posts']] \
            == ['Go thing']
        assert client.get('/api/posts?tag=unknown').get_json()['posts'] == []

    def test_search(self, client, create_post):
        create_post(title='Flask tips', content='Blueprints keep things tidy.')
        create_post(title='Other stuff', content='Nothing relevant in here.')

        titles = [p['title'] for p in client.get('/api/posts?search=blueprints').get_json()['posts']]
        assert titles == ['Flask tips']

    def test_popular_sort(self, client, create_post):
        quiet = create_post(title='Quiet post')
        loud = create_post(title='Loud post')
        client.get(f"/api/posts/{loud['id']}")

        titles = [p['title'] for p in client.get('/api/posts?sort=popular').get_json()['posts']]
        assert titles == ['Loud post', 'Quiet post']
        assert quiet['id'] != loud['id']

    def test_recent(self, client, create_post):
        for i in range(3):
            create_post(title=f'Post number {i}')

        posts = client.get('/api/posts/recent?limit=2').get_json()['posts']
        assert [p['title'] for p in posts] == ['Post number 2', 'Post number 1']


class TestSummarize:

    def test_summary(self, client, create_post, app):
        post = create_post()

        resp = client.post(f"/api/posts/{post['id']}/summarize")

        assert resp.status_code == 200
        assert resp.get_json()['summary'] == 'A short summary.'
        assert app.extensions['ai_service'].calls[0][0] == 'summarize'

    def test_ai_unavailable(self, client, create_post, app):
        app.extensions['ai_service'].available = False
        post = create_post()

        resp = client.post(f"/api/posts/{post['id']}/summarize")

        assert resp.status_code == 503


class TestMultipleUpload:

    def test_stores_every_image(self, client, alice):
        resp = client.post('/api/upload/multiple', data={
            'images': [(io.BytesIO(b'one'), 'a.png'), (io.BytesIO(b'two'), 'b.jpg')],
        }, headers=alice[1], content_type='multipart/form-data')

        assert resp.status_code == 201
        urls = resp.get_json()['urls']
        assert [u.rsplit('-', 1)[1] for u in urls] == ['a.png', 'b.jpg']
        assert all(client.get(u).status_code == 200 for u in urls)

    def test_one_bad_file_rejects_the_batch(self, client, alice, app):
        resp = client.post('/api/upload/multiple', data={
            'images': [(io.BytesIO(b'one'), 'a.png'), (io.BytesIO(b'MZ'), 'evil.exe')],
        }, headers=alice[1], content_type='multipart/form-data')

        assert resp.status_code == 400
        assert not os.path.isdir(os.path.join(app.config['UPLOAD_FOLDER'], 'posts'))

    def test_too_many_files(self, client, alice):
        resp = client.post('/api/upload/multiple', data={
            'images': [(io.BytesIO(b'x'), f'{i}.png') for i in range(11)],
        }, headers=alice[1], content_type='multipart/form-data')

        assert resp.status_code == 400

    def test_nothing_sent(self, client, alice):
        resp = client.post('/api/upload/multiple', data={}, headers=alice[1],
                           content_type='multipart/form-data')
        assert resp.status_code == 400
